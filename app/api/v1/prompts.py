"""Prompt template CRUD.

Template paths may be nested (``chat/greeting``); the ``{path:path}``
parameter keeps the slashes.
"""

from fastapi import APIRouter, Depends, Query, Response, status

from app.ai.manager import AIManager
from app.core.dependencies import get_ai_manager
from app.prompt.types import PromptTemplate
from app.schemas.prompt import TemplateCreate, TemplateListResponse, TemplateRender

router = APIRouter(prefix="/prompts", tags=["prompts"])


@router.get("", response_model=TemplateListResponse)
async def list_templates(
    prefix: str = Query("", description="Only list templates under this directory"),
    manager: AIManager = Depends(get_ai_manager),
):
    return TemplateListResponse(templates=manager.list_templates(prefix))


@router.post("", response_model=PromptTemplate, status_code=status.HTTP_201_CREATED)
async def create_template(body: TemplateCreate, manager: AIManager = Depends(get_ai_manager)):
    manager.create_template(body.path, body.template)
    return body.template


@router.get("/{path:path}", response_model=PromptTemplate)
async def get_template(path: str, manager: AIManager = Depends(get_ai_manager)):
    """Raw template, variables left unrendered."""
    return manager.get_template(path)


@router.post("/{path:path}/render", response_model=PromptTemplate)
async def render_template(path: str, body: TemplateRender, manager: AIManager = Depends(get_ai_manager)):
    return manager.get_template(path, body.variables)


@router.put("/{path:path}", response_model=PromptTemplate)
async def update_template(path: str, body: PromptTemplate, manager: AIManager = Depends(get_ai_manager)):
    manager.update_template(path, body)
    return body


@router.delete("/{path:path}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(path: str, manager: AIManager = Depends(get_ai_manager)):
    manager.delete_template(path)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
