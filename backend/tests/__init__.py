"""
BurnerPay backend test suite.

Test categories:
- Unit tests: services against a fake chain and an in-memory secret store
- Integration tests: discovery feeding the payment pipeline end to end
- API tests: FastAPI routes through httpx ASGITransport
"""
