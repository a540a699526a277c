from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import List, Optional


class SignupRequest(BaseModel):
    """
    Signup payload.

    Both fields must be present; emptiness is rejected by the signup
    handler so blank and missing values answer with the same status.
    """
    username: str
    password: str


class LoginRequest(BaseModel):
    username: str
    password: str


class UserResponse(BaseModel):
    """
    Safe user representation for API responses.

    Critical: Never include password_hash in any response.
    """
    id: str
    username: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserData(BaseModel):
    user: UserResponse


class UserEnvelope(BaseModel):
    message: str
    data: UserData


class MessageResponse(BaseModel):
    """
    Generic message response for operations without specific return data.
    """
    message: str


class PostCreate(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None


class PostUpdate(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None


class PostResponse(BaseModel):
    id: str
    title: str
    body: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PostData(BaseModel):
    post: PostResponse


class PostEnvelope(BaseModel):
    message: str
    data: PostData


class PostListData(BaseModel):
    posts: List[PostResponse]


class PostListEnvelope(BaseModel):
    message: str
    data: PostListData
