# Routes package init
"""
Photocat Backend — API Routes Package
=======================================

Route Inventory:
    - upload.py:  POST   /api/upload             (multipart image upload)
                  DELETE /api/image              (delete a blob by URL)
                  DELETE /api/image/{url:path}
    - photos.py:  GET    /data                   (newest records, max 100)
                  POST   /data
                  GET    /data/{id}
                  PUT    /data/{id}              (partial update)
                  DELETE /data/{id}              (also removes the image blob)
    - files.py:   GET    /files/{path}           (local blob backend only)
    - health.py:  GET    /health

Routes stay thin: pull data out of the request, call a service, shape the
response. Business rules live in services/.
"""
