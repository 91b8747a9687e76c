"""
Realtime app: notification delivery for dispatch events.

This app provides:
- Push delivery through a pluggable gateway (Firebase Cloud Messaging)
- Celery jobs that deliver notifications off the request path
- A WebSocket consumer mirroring notifications to connected clients
- JWT/Cookie authentication middleware for WebSocket connections

Key Components:
    - gateway.py: push gateways and device handle checks
    - tasks.py: Celery delivery jobs
    - notifications.py: notify_user / fan_out_except
    - consumers/: WebSocket consumers
"""
