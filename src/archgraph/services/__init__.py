"""Service layer — graph queries and relationship writes returning ServiceResult.

Services may import from domain and infrastructure layers.
Nothing below the service layer imports from it.
"""
