"""
中间表示模块 (Intermediate Representation Module)
================================================

定义采集与同步流程中的核心数据结构：FieldObservation、ValidatedField、
Session、SyncPayload 等。序列化时使用与浏览器端一致的字段别名
（id、isValid、formData），以便本地存储与远端收集器共用同一线格式。
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field, model_validator


class FieldType(str, Enum):
    """
    表单控件的展示类型枚举。
    input 的 type 属性会映射到这里（如 tel → phone、datetime-local → datetime），
    未识别的类型统一回退为 text。
    """
    TEXT = "text"
    EMAIL = "email"
    PASSWORD = "password"
    PHONE = "phone"
    NUMBER = "number"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    URL = "url"
    SEARCH = "search"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    FILE = "file"
    COLOR = "color"
    RANGE = "range"
    SELECT = "select"
    TEXTAREA = "textarea"


class Role(str, Enum):
    """字段的语义角色，由分类器根据名称推断。"""
    AADHAR = "aadhar"
    PAN = "pan"
    NAME = "name"
    EMAIL = "email"
    PHONE = "phone"
    TEXT = "text"


# Identity-bearing roles, in payload order
KEY_ROLES = (Role.AADHAR.value, Role.PAN.value, Role.NAME.value, Role.EMAIL.value, Role.PHONE.value)


def utc_now_iso() -> str:
    """当前 UTC 时间的 ISO-8601 字符串（毫秒精度，Z 结尾）。"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class FieldObservation(BaseModel):
    """
    页面上一个可交互控件的原始观测结果。

    属性:
        name: 尽力解析出的字段标识
        value: 去除首尾空白后的非空值
        type: 展示类型（FieldType）
        element_id: 元素 id（序列化为 "id"）
        placeholder: 占位文本
        required: 是否为必填控件
    """
    name: str
    value: str
    type: FieldType = FieldType.TEXT
    element_id: str = Field(default="", alias="id")
    placeholder: str = ""
    required: bool = False

    class Config:
        use_enum_values = True  # 序列化时使用枚举值
        populate_by_name = True


class FieldValidation(BaseModel):
    """
    单个字段的校验结论。

    属性:
        is_valid: 是否通过校验（序列化为 "isValid"）
        role: 推断出的语义角色；兼容旧记录中的 "type" 键
        message: 面向用户的结论描述
    """
    is_valid: bool = Field(alias="isValid")
    role: Role = Field(validation_alias=AliasChoices("role", "type"))
    message: str = ""

    class Config:
        use_enum_values = True
        populate_by_name = True


class ValidatedField(FieldObservation):
    """带校验结论的字段，只有 is_valid 为真的字段才会进入本地存储。"""
    validation: FieldValidation

    def to_wire(self) -> Dict[str, Any]:
        """转换为线格式字典（使用别名）。"""
        return self.model_dump(by_alias=True, mode="json")


class Session(BaseModel):
    """
    一次采集事件。

    属性:
        id: 存储分配的自增主键（入库前为 None）
        timestamp: 创建时间（ISO-8601）
        url: 采集时页面 URL
        fields: 有序的已校验字段列表（序列化为 "formData"）
        synced: 是否已被远端确认接收
        duplicate: 入库时是否被判定为已同步记录的重复
    """
    id: Optional[int] = None
    timestamp: str = Field(default_factory=utc_now_iso)
    url: str
    fields: List[ValidatedField] = Field(default_factory=list, alias="formData")
    synced: bool = False
    duplicate: bool = False

    class Config:
        populate_by_name = True

    @property
    def pending(self) -> bool:
        """是否仍待同步（未同步且非重复）。"""
        return not self.synced and not self.duplicate

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class ExtractionResult(BaseModel):
    """提取器的返回：成功标志、观测列表及可选的错误描述。"""
    success: bool
    fields: List[FieldObservation] = Field(default_factory=list)
    error: Optional[str] = None


class CaptureResult(BaseModel):
    """
    一次完整采集（提取 → 校验 → 去重入库）的结果。

    session 仅在至少有一个有效字段并成功入库时存在。
    """
    success: bool
    message: str
    fields: List[ValidatedField] = Field(default_factory=list)
    session: Optional[Session] = None


class SyncPayload(BaseModel):
    """
    发送到远端收集器的 POST 请求体。
    身份字段缺失时默认为空字符串。
    """
    url: str
    title: str = ""
    aadhar: str = ""
    pan: str = ""
    name: str = ""
    email: str = ""
    phone: str = ""
    raw_data: List[Dict[str, Any]] = Field(default_factory=list)


class SyncOutcome(BaseModel):
    """
    一次同步运行的结果。

    属性:
        ok: 所有待同步会话是否都被远端接收
        message: 面向用户的单条状态信息
        attempted: 本次运行发出的请求数
        synced_ids: 本次运行中被标记为已同步的会话 id（按处理顺序）
        failed_id: 导致中止的会话 id
        error: 传输错误详情（仅用于日志与诊断）
    """
    ok: bool
    message: str
    attempted: int = 0
    synced_ids: List[int] = Field(default_factory=list)
    failed_id: Optional[int] = None
    error: Optional[str] = None


class RemoteRecord(BaseModel):
    """远端批量拉取返回的一条记录；created_at 缺失时回退到 timestamp。"""
    id: Optional[int] = None
    url: str = ""
    title: Optional[str] = ""
    aadhar: Optional[str] = ""
    pan: Optional[str] = ""
    name: Optional[str] = ""
    email: Optional[str] = ""
    phone: Optional[str] = ""
    created_at: Optional[str] = None

    class Config:
        extra = "allow"

    @model_validator(mode="before")
    @classmethod
    def _fallback_created_at(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("created_at") and data.get("timestamp"):
            data = dict(data)
            data["created_at"] = data["timestamp"]
        return data
