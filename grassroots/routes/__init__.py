# Routes package init
"""
Grassroots Hub Backend — API Routes Package
=============================================

Route Inventory:
    - trials.py:     /api/trial-lists, /api/trial-evaluations
    - vacancies.py:  /api/vacancies, /api/vacancies/nearby
    - health.py:     GET /health

Routes stay thin: authenticate, validate, call a service, return its model.
"""
