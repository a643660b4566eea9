from .department_model import Department
from .drug_model import Drug
from .patient_model import Patient
from .enrollment_model import Enrollment
