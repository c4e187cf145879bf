"""Payload shapes exchanged by the endpoint modules.

These mirror the JSON documents of the schema builder API. They are
TypedDicts so decoded responses can be passed through without conversion.
"""

from typing import Any, Dict, List, Literal, Optional, TypedDict


# --- Auth ---

class LoginRequest(TypedDict):
    email: str
    password: str


class RegisterRequest(TypedDict):
    name: str
    email: str
    password: str


class User(TypedDict, total=False):
    id: str
    name: str
    email: str
    isAdmin: bool
    subscriptionType: str
    createdAt: str
    updatedAt: str


class LoginResponse(TypedDict, total=False):
    token: str
    user: User
    expiresIn: int


# --- Projects ---

class Project(TypedDict, total=False):
    id: int
    name: str
    description: str
    apiKey: str
    tableCount: int
    userId: str
    createdAt: str
    updatedAt: str


class CreateProjectRequest(TypedDict, total=False):
    name: str
    description: str
    apiKeyPassword: str


class UpdateProjectRequest(TypedDict, total=False):
    name: str
    description: str


# --- Tables & fields ---

class Field(TypedDict, total=False):
    id: str
    name: str
    type: str
    isRequired: bool
    description: str
    validation: Dict[str, Any]


class Table(TypedDict, total=False):
    id: str
    projectId: str
    name: str
    fields: List[Field]
    createdAt: str
    updatedAt: str


class CreateTableRequest(TypedDict, total=False):
    name: str
    description: str
    fields: List[Field]


class CreateFieldRequest(TypedDict, total=False):
    name: str
    type: str
    isRequired: bool
    description: str
    validation: Dict[str, Any]


# --- Records ---

TableRecord = Dict[str, Any]
CreateRecordRequest = Dict[str, Any]


# --- API keys ---

class ApiKey(TypedDict, total=False):
    id: str
    name: str
    key: str
    permissions: List[str]
    projectId: str
    createdAt: str
    lastUsed: Optional[str]


class CreateApiKeyRequest(TypedDict, total=False):
    name: str
    permissions: List[str]


# --- Pagination ---

class PaginationParams(TypedDict, total=False):
    page: int
    limit: int
    sort: str
    order: Literal["asc", "desc"]


class HealthStatus(TypedDict, total=False):
    status: str
    version: str
