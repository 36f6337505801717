from .upload import router as upload_router

all_routers = [
    upload_router,
]
