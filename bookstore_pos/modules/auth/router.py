from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from bookstore_pos.dependencies.dbDependecies import get_db
from bookstore_pos.dependencies.userDependencies import operator_dependency
from bookstore_pos.modules.auth.service import AuthService
from bookstore_pos.modules.auth.schemas import OperatorOut, TokenResponse

auth_router = APIRouter()

@auth_router.post("/login", response_model=TokenResponse)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """
    Login de operador. Retorna token de acceso (Bearer).
    """
    auth_service = AuthService(db)
    return auth_service.login(form_data.username, form_data.password)

@auth_router.get("/me", response_model=OperatorOut)
async def get_current_operator_info(current_operator: operator_dependency):
    """
    Obtener información del operador actual.
    """
    return OperatorOut.model_validate(current_operator)
