# Routes package init
"""
RecipeShelf Backend: API Routes Package
========================================

Route Inventory:
    - thumbnails.py: GET /thumbnails/{objectPath}?w=&h=&q=  (resized JPEG)
    - objects.py:    GET /objects/{objectPath}              (original bytes)
    - health.py:     GET /health                            (store check)

Routes stay thin: parse the request, call a service, return its response.
"""
