import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bookstore_pos.common.exceptions import ConflictError
from bookstore_pos.core.config import settings
from bookstore_pos.modules.auth.models import Operator
from bookstore_pos.modules.auth.schemas import OperatorCreate, OperatorOut, TokenResponse
from bookstore_pos.modules.auth.utils import hash_password, verify_password, create_access_token

logger = logging.getLogger(__name__)


class AuthService:
    """
    Servicio de autenticación de operadores.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_operator(self, operator_data: OperatorCreate) -> Operator:
        """Crear operador con contraseña hasheada"""
        existing = self.db.query(Operator).filter(Operator.username == operator_data.username).first()
        if existing:
            raise ConflictError("Este usuario ya está registrado", username=operator_data.username)

        operator = Operator(
            username=operator_data.username,
            name=operator_data.name,
            password_hash=hash_password(operator_data.password),
            is_active=True
        )
        try:
            self.db.add(operator)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Este usuario ya está registrado", username=operator_data.username)
        self.db.refresh(operator)

        logger.info(f"Operador creado: {operator.username} (id={operator.id})")
        return operator

    def authenticate(self, username: str, password: str) -> Operator:
        operator = self.db.query(Operator).filter(
            Operator.username == username.strip().lower()
        ).first()

        if not operator or not verify_password(password, operator.password_hash):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Credenciales incorrectas",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if not operator.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operador inactivo"
            )

        return operator

    def login(self, username: str, password: str) -> TokenResponse:
        """
        Login de operador. Retorna token de acceso.
        """
        operator = self.authenticate(username, password)

        access_token = create_access_token({"sub": str(operator.id), "username": operator.username})
        logger.info(f"Login de operador {operator.username}")

        return TokenResponse(
            access_token=access_token,
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            operator=OperatorOut.model_validate(operator)
        )
