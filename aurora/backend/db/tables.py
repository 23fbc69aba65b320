# Table names shared by the services.
USERS = "users"
STAFFS = "staffs"
STUDENTS = "students"
STAFF_ATTENDANCE_DAYS = "staff_attendance_days"
STAFF_ATTENDANCE_STATUSES = "staff_attendance_statuses"
STUDENT_ATTENDANCES = "student_attendances"
