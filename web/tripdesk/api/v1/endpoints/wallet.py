from fastapi import APIRouter, Depends

from tripdesk.api.v1.schemas import WalletOut
from tripdesk.deps import SessionDep
from tripdesk.security import current_user, user_id_of
from tripdesk.services import WalletService


router = APIRouter()


@router.get("", response_model=WalletOut)
async def my_wallet(sess: SessionDep, user=Depends(current_user)):
    """Balance, recent transactions and the user's referral link"""
    return await WalletService(sess).get_overview(user_id_of(user))


@router.post("/referral-code")
async def referral_code(sess: SessionDep, user=Depends(current_user)):
    code = await WalletService(sess).generate_referral_code(user_id_of(user))
    return {"code": code}


@router.post("/signup-bonus")
async def signup_bonus(sess: SessionDep, user=Depends(current_user)):
    credited = await WalletService(sess).credit_signup_bonus(user_id_of(user))
    return {"credited": credited}
