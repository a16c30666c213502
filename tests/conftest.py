import os

os.environ.setdefault("ALUMNI_STORE_BACKEND", "memory")
os.environ.setdefault("ALUMNI_OTEL_ENABLED", "false")
