# Services package init
"""
Grassroots Hub Backend — Services Layer
=========================================

What:  Business logic between routes (HTTP) and repositories (persistence).
How:   Services own transactions. Routes receive them through FastAPI
       dependencies, so tests can swap in services bound to a test database.

Service Inventory:
    - ScopeLocks: per-trial-list asyncio locks
    - TrialService: trial lists, evaluations and their rankings
    - VacancyService: team vacancies and the proximity search
"""
