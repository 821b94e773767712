app_name = "clinic_scheduling"
app_title = "Clinic Scheduling"
app_publisher = "Clinic Scheduling contributors"
app_description = "Disponibilidad de recursos y búsqueda de horarios para citas de servicio"
app_email = "dev@clinic-scheduling.local"
app_license = "mit"

# Apps
# ------------------

# required_apps = []

# Installation
# ------------

# Genera la ventana completa de disponibilidad para los recursos existentes
after_install = "clinic_scheduling.clinic_scheduling.scheduling.tasks.refresh_availability_window"

# Scheduled Tasks
# ---------------

scheduler_events = {
	"daily": [
		"clinic_scheduling.clinic_scheduling.scheduling.tasks.roll_availability_window"
	]
}

# Testing
# -------

# before_tests = "clinic_scheduling.install.before_tests"

