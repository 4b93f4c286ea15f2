# api/dependencies.py

from fastapi import Header, HTTPException
from services.database import get_client


def verify_api_key(x_api_key: str = Header(...)) -> str:
    """
    Une API key par whitelabel.
    Retourne whitelabel_id si OK.
    Header attendu : X-API-KEY
    """
    client = get_client()
    result = (
        client.table("whitelabels")
        .select("id")
        .eq("api_key", x_api_key)
        .limit(1)
        .execute()
    )

    if not result.data:
        raise HTTPException(status_code=401, detail="Non autorisé")

    return result.data[0]["id"]
