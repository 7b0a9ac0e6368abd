"""
Services layer - Business logic goes here.
Keep services focused on one concern (ingest, analytics, remediation, etc.)

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- Views are derived from the live snapshot, never stored
- Remediation always reports an explicit outcome
- No automated retries or escalation
"""
