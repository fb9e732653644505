import logging
import os
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, File, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

import config
import database
from access import (
    create_token,
    get_current_user,
    hash_password,
    is_admin_invite,
    require_admin,
    verify_password,
)
from dashboard import DashboardAggregator
from errors import Conflict, NotFound, Unauthenticated, ValidationError, install_handlers
from lifecycle import TaskLifecycle
from schemas import (
    ChecklistUpdate,
    CurrentUser,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    StatusUpdate,
    TaskCreate,
    TaskStatus,
    TaskUpdate,
    User,
)
from stores import TaskStore, UserStore, get_task_store, get_user_store

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("task_manager")

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png"}

os.makedirs(config.UPLOAD_DIR, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await database.connect()
        await UserStore(database.get_db()).ensure_indexes()
        await TaskStore(database.get_db()).ensure_indexes()
    except Exception as exc:
        logger.critical("Could not connect to MongoDB at startup: %s", exc)
        sys.exit(1)
    yield
    await database.close()


app = FastAPI(title="Task Manager Backend API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.CLIENT_URL],
    allow_credentials=config.CLIENT_URL != "*",
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)
install_handlers(app)

# serve uploads
app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR), name="uploads")

api = APIRouter(prefix=config.API_PREFIX)


# Dependencies

def get_lifecycle(
    tasks: TaskStore = Depends(get_task_store),
    users: UserStore = Depends(get_user_store),
) -> TaskLifecycle:
    return TaskLifecycle(tasks, users)


def get_dashboard(tasks: TaskStore = Depends(get_task_store)) -> DashboardAggregator:
    return DashboardAggregator(tasks)


def auth_response(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "profileImageUrl": user.profile_image_url,
        "token": create_token(user.id),
    }


def dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


# Auth Routes

@api.post("/auth/register", status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, users: UserStore = Depends(get_user_store)):
    if await users.get_by_email(payload.email):
        raise Conflict("User already exists")
    role = "admin" if is_admin_invite(payload.admin_invite_token) else "member"
    user = await users.create(
        User(
            email=payload.email,
            name=payload.name,
            password_hash=hash_password(payload.password),
            role=role,
            profile_image_url=payload.profile_image_url,
        )
    )
    logger.info("Registered user %s (role=%s)", user.id, user.role)
    return auth_response(user)


@api.post("/auth/login")
async def login(payload: LoginRequest, users: UserStore = Depends(get_user_store)):
    user = await users.get_by_email(payload.email)
    if not user or not verify_password(payload.password, user.password_hash):
        raise Unauthenticated("Invalid email or password")
    return auth_response(user)


@api.get("/auth/profile")
async def get_profile(
    current: CurrentUser = Depends(get_current_user),
    users: UserStore = Depends(get_user_store),
):
    user = await users.get(current.id)
    if not user:
        raise NotFound("User not found")
    return dump(user.public())


@api.put("/auth/profile")
async def update_profile(
    payload: ProfileUpdate,
    current: CurrentUser = Depends(get_current_user),
    users: UserStore = Depends(get_user_store),
):
    user = await users.get(current.id)
    if not user:
        raise NotFound("User not found")
    if payload.name:
        user.name = payload.name
    if payload.email and payload.email != user.email:
        if await users.get_by_email(payload.email):
            raise Conflict("Email already in use")
        user.email = payload.email
    if payload.password:
        user.password_hash = hash_password(payload.password)
    if payload.profile_image_url is not None:
        user.profile_image_url = payload.profile_image_url
    updated = await users.save(user)
    if not updated:
        raise NotFound("User not found")
    return auth_response(updated)


@api.post("/auth/upload-image")
async def upload_image(request: Request, image: Optional[UploadFile] = File(default=None)):
    if image is None or not image.filename:
        raise ValidationError("No file uploaded")
    if image.content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError("Only .jpeg, .jpg and .png formats are allowed")
    filename = f"{int(datetime.now().timestamp() * 1000)}-{os.path.basename(image.filename)}"
    contents = await image.read()
    with open(os.path.join(config.UPLOAD_DIR, filename), "wb") as f:
        f.write(contents)
    return {"imageUrl": f"{str(request.base_url).rstrip('/')}/uploads/{filename}"}


# Task Routes

@api.get("/tasks")
async def list_tasks(
    status: Optional[TaskStatus] = None,
    user: CurrentUser = Depends(get_current_user),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.list_tasks(user, status=status)


@api.get("/tasks/dashboard")
async def dashboard_data(
    _: CurrentUser = Depends(get_current_user),
    dashboard: DashboardAggregator = Depends(get_dashboard),
):
    return await dashboard.dashboard()


@api.get("/tasks/dashboard/mine")
async def my_dashboard_data(
    user: CurrentUser = Depends(get_current_user),
    dashboard: DashboardAggregator = Depends(get_dashboard),
):
    return await dashboard.dashboard(user.id)


@api.get("/tasks/{task_id}")
async def get_task(
    task_id: str,
    _: CurrentUser = Depends(get_current_user),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.get_task(task_id)


@api.post("/tasks", status_code=status.HTTP_201_CREATED)
async def create_task(
    payload: TaskCreate,
    user: CurrentUser = Depends(require_admin),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
):
    task = await lifecycle.create_task(user.id, payload)
    return {"message": "Task created successfully", "task": dump(task)}


@api.put("/tasks/{task_id}")
async def update_task(
    task_id: str,
    payload: TaskUpdate,
    _: CurrentUser = Depends(get_current_user),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
):
    task = await lifecycle.update_task_fields(task_id, payload)
    return {"message": "Task updated successfully", "updatedTask": dump(task)}


@api.delete("/tasks/{task_id}")
async def delete_task(
    task_id: str,
    _: CurrentUser = Depends(require_admin),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
):
    await lifecycle.delete_task(task_id)
    return {"message": "Task deleted successfully"}


@api.put("/tasks/{task_id}/status")
async def update_task_status(
    task_id: str,
    payload: StatusUpdate,
    user: CurrentUser = Depends(get_current_user),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
):
    task = await lifecycle.set_status(task_id, user, payload.status)
    return {"message": "Task status updated", "task": dump(task)}


@api.put("/tasks/{task_id}/checklist")
async def update_task_checklist(
    task_id: str,
    payload: ChecklistUpdate,
    user: CurrentUser = Depends(get_current_user),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
):
    task = await lifecycle.update_checklist(task_id, user, payload.todo_checklist)
    return {"message": "Checklist updated", "task": task}


# User Routes

@api.get("/users")
async def list_users(
    _: CurrentUser = Depends(require_admin),
    users: UserStore = Depends(get_user_store),
    tasks: TaskStore = Depends(get_task_store),
):
    out = []
    for user in await users.list(role="member"):
        doc = dump(user.public())
        doc["pendingTasks"] = await tasks.count(status="Pending", assignee_id=user.id)
        doc["inProgressTasks"] = await tasks.count(status="InProgress", assignee_id=user.id)
        doc["completedTasks"] = await tasks.count(status="Completed", assignee_id=user.id)
        out.append(doc)
    return out


@api.get("/users/{user_id}")
async def get_user(
    user_id: str,
    _: CurrentUser = Depends(get_current_user),
    users: UserStore = Depends(get_user_store),
):
    user = await users.get(user_id)
    if not user:
        raise NotFound("User not found")
    return dump(user.public())


@api.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    admin: CurrentUser = Depends(require_admin),
    users: UserStore = Depends(get_user_store),
):
    if not await users.delete(user_id):
        raise NotFound("User not found")
    logger.info("User %s deleted by %s", user_id, admin.id)
    return {"message": "User deleted successfully"}


# Healthcheck
@api.get("/healthcheck")
def healthcheck():
    return {"status": "ok", "time": datetime.now(timezone.utc).isoformat()}


app.include_router(api)


@app.get("/")
def read_root():
    return {"message": "Task Manager Backend API"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
