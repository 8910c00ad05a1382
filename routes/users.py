from fastapi import APIRouter, Depends, Query
from db.database import get_db
from models.user import UserCreate, UserUpdate, ReferralApply
from utils.auth import current_user
from utils.profiles import create_user, get_profile, update_profile
from utils.referrals import apply_referral, get_referral_stats, get_referred_users

router = APIRouter()

@router.post("/register")
def register(payload: UserCreate, conn = Depends(get_db)):
    """Create an account, or return the existing one for a known phone."""
    return create_user(
        conn,
        payload.phone,
        name=payload.name,
        district=payload.district,
        state=payload.state,
        medium=payload.medium,
        referral_code=payload.referral_code,
    )

@router.get("/profile")
def profile(phone: str = Depends(current_user), conn = Depends(get_db)):
    return {"success": True, "user": get_profile(conn, phone)}

@router.patch("/profile")
def edit_profile(payload: UserUpdate, phone: str = Depends(current_user), conn = Depends(get_db)):
    fields = payload.model_dump(exclude_unset=True)
    return {"success": True, "user": update_profile(conn, phone, fields)}

@router.post("/referral")
def referral(payload: ReferralApply, phone: str = Depends(current_user), conn = Depends(get_db)):
    """Apply a referral code after signup. Errors are returned as-is."""
    result = apply_referral(conn, phone, payload.referral_code)
    return {"success": True, **result}

@router.get("/referral-stats")
def referral_stats(phone: str = Depends(current_user), conn = Depends(get_db)):
    return {"success": True, **get_referral_stats(conn, phone)}

@router.get("/referred-users")
def referred_users(
    limit: int = Query(20),
    offset: int = Query(0),
    phone: str = Depends(current_user),
    conn = Depends(get_db),
):
    users = get_referred_users(conn, phone, limit, offset)
    return {"success": True, "users": users, "limit": limit, "offset": offset}
