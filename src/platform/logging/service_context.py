"""
Service context extraction for log traceability.

Every log line carries `<service>@<deploy_env>:<instance>` so interleaved
output from several workers can be told apart.
"""

import os
import socket
from functools import lru_cache


@lru_cache(maxsize=1)
def get_service_context() -> str:
    service_name = os.getenv('SERVICE_NAME', 'registration-service')
    deploy_env = os.getenv('DEPLOY_ENV', 'local_dev')

    # Containers get a short hostname, local runs fall back to the PID
    hostname = os.getenv('HOSTNAME') or socket.gethostname()
    instance = hostname[:12] if deploy_env != 'local_dev' else str(os.getpid())

    return f'{service_name}@{deploy_env}:{instance}'
