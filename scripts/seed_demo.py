from leaveflow.database import SessionLocal, init_db
from leaveflow.core.init_system import seed_default_policies
from leaveflow.models.department import Department
from leaveflow.models.employee import Employee, UserRole
from leaveflow.services.directory import register_employee

init_db()
db = SessionLocal()

def create_employee(name, email, role, department_id, manager_id=None):
    # Check if employee already exists to avoid unique constraint errors
    existing = db.query(Employee).filter(Employee.email == email).first()
    if existing:
        print(f"Employee {email} already exists. Skipping.")
        return existing

    employee = register_employee(db, name, email, role, department_id=department_id, manager_id=manager_id)
    db.commit()
    print(f"Created {role.value} -> {email} ({employee.employee_code}, id={employee.id})")
    return employee

department = db.query(Department).filter(Department.code == "OPS").first()
if not department:
    department = Department(name="Operations", code="OPS")
    db.add(department)
    db.commit()

added = seed_default_policies(db)
print(f"Seeded {added} leave policies")

hr = create_employee("Hana HR", "hr@example.com", UserRole.HR, department.id)
admin = create_employee("Adam Admin", "admin@example.com", UserRole.ADMIN, department.id)
manager = create_employee("Mira Manager", "manager@example.com", UserRole.LINE_MANAGER, department.id)
create_employee("Eli Employee", "employee@example.com", UserRole.EMPLOYEE, department.id, manager_id=manager.id)

db.close()
