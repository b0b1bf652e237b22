"""
流程相关 API 路由

提供流程的增删改查、导入导出、校验，以及编辑器操作（步骤、连线、变量）。
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Query, Response, status
from fastapi.responses import PlainTextResponse

from chatflow.api.schemas import (
    ConnectionResponse,
    ConnectRequest,
    DisconnectResponse,
    ErrorResponse,
    ExportFormat,
    FlowCreateRequest,
    FlowDetailResponse,
    FlowImportRequest,
    FlowListResponse,
    FlowResponse,
    FlowUpdateRequest,
    StepCreateRequest,
    StepMoveRequest,
    ValidationResponse,
    VariableCreateRequest,
    VariableResponse,
)
from chatflow.api.dependencies import get_repository, get_sessions
from chatflow.api.store import FlowRecord, FlowRepository, SessionRegistry
from chatflow.flows import (
    FlowParseError,
    FlowParser,
    FlowValidator,
    Position,
    UnknownVariableError,
)


router = APIRouter()

_parser = FlowParser()
_validator = FlowValidator()


def _summary(record: FlowRecord) -> FlowResponse:
    return FlowResponse(
        id=record.id,
        name=record.name,
        description=record.description,
        steps_count=len(record.graph),
        variables_count=len(record.variables),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _detail(record: FlowRecord) -> FlowDetailResponse:
    document = _parser.export(record.graph, record.variables)
    return FlowDetailResponse(
        **_summary(record).model_dump(),
        steps=document["steps"],
        connections=document["connections"],
        variables=document["variables"],
    )


# ==================== 流程 ====================

@router.get(
    "",
    response_model=FlowListResponse,
    summary="获取流程列表",
)
async def list_flows(repo: FlowRepository = Depends(get_repository)):
    """获取所有流程"""
    flows = [_summary(record) for record in repo.list()]
    return FlowListResponse(flows=flows, total=len(flows))


@router.post(
    "",
    response_model=FlowDetailResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse, "description": "流程定义不合法"}},
    summary="创建流程",
)
async def create_flow(
    request: FlowCreateRequest,
    repo: FlowRepository = Depends(get_repository),
):
    """
    创建流程

    - **name**: 流程名称
    - **steps**: 步骤定义（可为空，之后通过编辑接口添加）
    - **variables**: 变量定义
    """
    parsed = _parser.parse({
        "name": request.name,
        "steps": request.steps,
        "variables": request.variables,
    })
    record = repo.create(parsed.graph, parsed.variables, description=request.description)
    return _detail(record)


@router.post(
    "/import",
    response_model=FlowDetailResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse, "description": "文档格式错误"}},
    summary="导入流程",
    description="导入导出文档，也接受旧版编辑器的文档格式",
)
async def import_flow(
    request: FlowImportRequest,
    repo: FlowRepository = Depends(get_repository),
):
    """导入流程"""
    if request.document is not None:
        parsed = _parser.parse(request.document)
    elif request.content is not None:
        if request.format == ExportFormat.YAML:
            parsed = _parser.parse_from_yaml(request.content)
        else:
            parsed = _parser.parse_from_json(request.content)
    else:
        raise FlowParseError("document 和 content 至少提供一个")

    record = repo.create(parsed.graph, parsed.variables, description=request.description)
    return _detail(record)


@router.get(
    "/{flow_id}",
    response_model=FlowDetailResponse,
    responses={404: {"model": ErrorResponse, "description": "流程不存在"}},
    summary="获取流程详情",
)
async def get_flow(flow_id: str, repo: FlowRepository = Depends(get_repository)):
    """获取流程的步骤、连线和变量"""
    return _detail(repo.get(flow_id))


@router.put(
    "/{flow_id}",
    response_model=FlowDetailResponse,
    responses={
        400: {"model": ErrorResponse, "description": "流程定义不合法"},
        404: {"model": ErrorResponse, "description": "流程不存在"},
    },
    summary="更新流程",
)
async def update_flow(
    flow_id: str,
    request: FlowUpdateRequest,
    repo: FlowRepository = Depends(get_repository),
):
    """
    更新流程

    提供 steps 时整体替换步骤，提供 variables 时整体替换变量。
    """
    record = repo.get(flow_id)

    if request.steps is not None or request.variables is not None:
        current = _parser.export(record.graph, record.variables)
        parsed = _parser.parse({
            "name": record.name,
            "steps": request.steps if request.steps is not None else current["steps"],
            "variables": (
                request.variables if request.variables is not None else current["variables"]
            ),
        })
        record.graph = parsed.graph
        record.variables = parsed.variables

    if request.name is not None:
        record.graph.name = request.name
    if request.description is not None:
        record.description = request.description

    record.touch()
    return _detail(record)


@router.delete(
    "/{flow_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse, "description": "流程不存在"}},
    summary="删除流程",
)
async def delete_flow(
    flow_id: str,
    repo: FlowRepository = Depends(get_repository),
    sessions: SessionRegistry = Depends(get_sessions),
):
    """删除流程及其所有预览会话"""
    repo.delete(flow_id)
    sessions.delete_for_flow(flow_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{flow_id}/export",
    responses={404: {"model": ErrorResponse, "description": "流程不存在"}},
    summary="导出流程",
)
async def export_flow(
    flow_id: str,
    format: ExportFormat = Query(ExportFormat.JSON, description="导出格式"),
    repo: FlowRepository = Depends(get_repository),
):
    """导出为 JSON 对象或 YAML 文本"""
    record = repo.get(flow_id)
    if format == ExportFormat.YAML:
        return PlainTextResponse(
            _parser.dump_yaml(record.graph, record.variables),
            media_type="application/x-yaml",
        )
    return _parser.export(record.graph, record.variables)


@router.get(
    "/{flow_id}/validate",
    response_model=ValidationResponse,
    responses={404: {"model": ErrorResponse, "description": "流程不存在"}},
    summary="校验流程",
)
async def validate_flow(flow_id: str, repo: FlowRepository = Depends(get_repository)):
    """静态检查流程结构"""
    record = repo.get(flow_id)
    issues = _validator.validate(record.graph, record.variables)
    errors = sum(1 for issue in issues if issue.is_error)
    return ValidationResponse(
        valid=errors == 0,
        errors=errors,
        warnings=len(issues) - errors,
        issues=[issue.to_dict() for issue in issues],
    )


# ==================== 步骤 ====================

@router.post(
    "/{flow_id}/steps",
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "字段不适用于该步骤类型"},
        404: {"model": ErrorResponse, "description": "流程不存在"},
        409: {"model": ErrorResponse, "description": "步骤 ID 重复"},
    },
    summary="添加步骤",
)
async def create_step(
    flow_id: str,
    request: StepCreateRequest,
    repo: FlowRepository = Depends(get_repository),
) -> Dict[str, Any]:
    """添加步骤，返回步骤定义"""
    record = repo.get(flow_id)
    position = Position(request.position.x, request.position.y) if request.position else None
    step = record.graph.create_step(
        request.kind,
        content=request.content,
        position=position,
        step_id=request.id,
        **request.properties,
    )
    record.touch()
    return step.to_dict()


@router.patch(
    "/{flow_id}/steps/{step_id}",
    responses={
        400: {"model": ErrorResponse, "description": "字段不适用于该步骤类型"},
        404: {"model": ErrorResponse, "description": "流程或步骤不存在"},
    },
    summary="修改步骤",
)
async def update_step(
    flow_id: str,
    step_id: str,
    fields: Dict[str, Any] = Body(..., description="要修改的字段"),
    repo: FlowRepository = Depends(get_repository),
) -> Dict[str, Any]:
    """修改步骤字段（content、position 以及类型特定字段）"""
    record = repo.get(flow_id)
    step = record.graph.update_step(step_id, **fields)
    record.touch()
    return step.to_dict()


@router.post(
    "/{flow_id}/steps/{step_id}/move",
    responses={404: {"model": ErrorResponse, "description": "流程或步骤不存在"}},
    summary="移动步骤",
)
async def move_step(
    flow_id: str,
    step_id: str,
    request: StepMoveRequest,
    repo: FlowRepository = Depends(get_repository),
) -> Dict[str, Any]:
    """移动步骤（只改变坐标）"""
    record = repo.get(flow_id)
    step = record.graph.move_step(step_id, request.x, request.y)
    record.touch()
    return step.to_dict()


@router.delete(
    "/{flow_id}/steps/{step_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse, "description": "流程或步骤不存在"}},
    summary="删除步骤",
)
async def delete_step(
    flow_id: str,
    step_id: str,
    repo: FlowRepository = Depends(get_repository),
):
    """删除步骤，同时清除指向它的连线"""
    record = repo.get(flow_id)
    record.graph.remove_step(step_id)
    record.touch()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ==================== 连线 ====================

@router.post(
    "/{flow_id}/connections",
    response_model=ConnectionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "源步骤没有该出口"},
        404: {"model": ErrorResponse, "description": "流程或步骤不存在"},
    },
    summary="连接步骤",
)
async def connect_steps(
    flow_id: str,
    request: ConnectRequest,
    repo: FlowRepository = Depends(get_repository),
):
    """连接两个步骤（结束步骤不能作为源）"""
    record = repo.get(flow_id)
    connection = record.graph.connect(
        request.from_step_id,
        request.to_step_id,
        request.from_output_id,
    )
    record.touch()
    return connection.to_dict()


@router.delete(
    "/{flow_id}/connections",
    response_model=DisconnectResponse,
    responses={
        400: {"model": ErrorResponse, "description": "源步骤没有该出口"},
        404: {"model": ErrorResponse, "description": "流程或步骤不存在"},
    },
    summary="断开连线",
)
async def disconnect_steps(
    flow_id: str,
    from_step_id: str = Query(..., description="源步骤 ID"),
    from_output_id: str = Query(None, description="选项或分支 ID"),
    repo: FlowRepository = Depends(get_repository),
):
    """断开源步骤的一个出口"""
    record = repo.get(flow_id)
    removed = record.graph.disconnect(from_step_id, from_output_id)
    record.touch()
    return DisconnectResponse(removed=removed)


# ==================== 变量 ====================

@router.post(
    "/{flow_id}/variables",
    response_model=VariableResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "变量名不合法"},
        409: {"model": ErrorResponse, "description": "变量已存在"},
    },
    summary="创建变量",
)
async def create_variable(
    flow_id: str,
    request: VariableCreateRequest,
    repo: FlowRepository = Depends(get_repository),
):
    """创建变量（数字初始为 0，文本初始为空）"""
    record = repo.get(flow_id)
    variable = record.variables.create_variable(request.name, request.type)
    record.touch()
    return variable.to_dict()


@router.delete(
    "/{flow_id}/variables/{name}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse, "description": "流程或变量不存在"}},
    summary="删除变量",
)
async def delete_variable(
    flow_id: str,
    name: str,
    repo: FlowRepository = Depends(get_repository),
):
    """删除变量，步骤中对它的引用保持不变"""
    record = repo.get(flow_id)
    if not record.variables.remove_variable(name):
        raise UnknownVariableError(name)
    record.touch()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
