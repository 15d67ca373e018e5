from adapters.hitoko import HitokoAdapter
from services.hitoko_api import HitokoApiService

def get_hitoko_adapter() -> HitokoAdapter:
    return HitokoAdapter()

def get_hitoko_api_service() -> HitokoApiService:
    return HitokoApiService()
