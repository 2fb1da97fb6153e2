"""
Webhook Relay service package.

The relay fronts a Discord incoming webhook, enforcing:
- Request gate: POST only, CORS preflight, client key on the signed route
- Authentication: SHA-256 signature over hwid + timestamp + shared secret
- Rate limiting: Redis sliding window keyed by caller IP (and hwid)
- Validation: Discord message size and shape limits

Structure:
- app.main: FastAPI app, routes, and service wiring.
- app.domain: Admission stages and the pipeline that chains them.
- app.ratelimit: Sliding window limiter and its process-wide instance.
- app.adapters: HTTP client for the upstream webhook.
"""
