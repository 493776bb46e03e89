import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'qrdine.settings')

app = Celery('qrdine')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
