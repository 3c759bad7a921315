# Services package init
"""
Photocat Backend — Services Layer
===================================

What:  Business logic between the routes (HTTP) and the stores (persistence).
How:   Services are built once in the app lifespan, kept on app.state and
       handed to routes through FastAPI dependencies (see dependencies.py).

Service Inventory:
    - MultipartImageReader: streaming multipart parsing with size/type limits
    - ImageTranscoder:      Pillow decode → orient → resize → re-encode
    - BlobStore (abstract): put/delete for image bytes
        - VercelBlobStore:  Vercel Blob REST API over httpx
        - LocalBlobStore:   local directory served by GET /files/{path}
    - UploadService:        receive → validate → transcode → store
    - RecordStore:          SQLAlchemy CRUD for catalogue records
    - PhotoService:         record CRUD with conflict retry and blob cleanup
"""
