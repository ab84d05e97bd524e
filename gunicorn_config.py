import multiprocessing
import os

# Server socket
bind = f"0.0.0.0:{os.getenv('PORT', '8000')}"
backlog = 1024

# Worker processes
# Each worker holds its own Mongo connection pool
workers = min(multiprocessing.cpu_count() + 1, int(os.getenv("WEB_CONCURRENCY", "2")))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000

# Timeouts
timeout = 60
keepalive = 5
graceful_timeout = 30

# Logging
accesslog = "-"  # stdout
errorlog = "-"   # stderr
loglevel = os.getenv("LOG_LEVEL", "info")

proc_name = "shared-calendar-api"

# Recycle workers periodically
max_requests = 1000
max_requests_jitter = 50

preload_app = True

def on_starting(server):
    server.log.info("Starting shared-calendar-api server")

def on_exit(server):
    server.log.info("Stopping shared-calendar-api server")
