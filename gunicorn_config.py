import os
import multiprocessing

# Gunicorn Production Configuration
# Run: gunicorn -c gunicorn_config.py wsgi:app
bind = os.environ.get('GUNICORN_BIND', '0.0.0.0:8000')
proc_name = 'studio-backoffice'

# Every request holds one pooled MySQL connection while it settles, so keep
# workers × threads below SQLALCHEMY_ENGINE_OPTIONS pool_size + max_overflow
workers = int(os.environ.get('GUNICORN_WORKERS', min(multiprocessing.cpu_count() * 2 + 1, 9)))
threads = 2
worker_class = 'gthread'

# Resilience
timeout = 60
graceful_timeout = 30
max_requests = 1000
max_requests_jitter = 100
keepalive = 5

# Logging
accesslog = '-'       # Stdout
errorlog = '-'        # Stderr
loglevel = os.environ.get('GUNICORN_LOG_LEVEL', 'info')
capture_output = True
