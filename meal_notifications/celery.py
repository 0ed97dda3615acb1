from celery import Celery

# Create Celery app
celery = Celery("meal_notifications")

# Load configuration from meal_notifications.config.celeryconfig module
celery.config_from_object("meal_notifications.config.celeryconfig")
