from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiError(BaseModel):
	model_config = ConfigDict(extra="forbid")

	code: str
	message: str
	evidence: List[str] = Field(default_factory=list)


class ApiEnvelope(BaseModel):
	model_config = ConfigDict(extra="allow")

	ok: bool
	generated_at: str
	request_id: Optional[str] = None
	data: Optional[Dict[str, Any]] = None
	error: Optional[ApiError] = None


class ChatMessage(BaseModel):
	"""A message as posted by the chat client. Unknown roles are kept and filtered later."""

	model_config = ConfigDict(extra="ignore", populate_by_name=True)

	role: str
	content: str = ""
	id: Optional[str] = None
	is_streaming: bool = Field(default=False, alias="isStreaming")


class OutboundMessage(BaseModel):
	model_config = ConfigDict(extra="forbid")

	role: Literal["system", "user", "assistant"]
	content: str


class ChatCompletionRequest(BaseModel):
	model_config = ConfigDict(extra="forbid")

	model: str = Field(..., min_length=1)
	messages: List[OutboundMessage]
	stream: bool = True
	max_tokens: int = Field(..., ge=1)
	temperature: float = Field(..., ge=0, le=2)
	top_p: float = Field(..., ge=0, le=1)
	frequency_penalty: float = Field(..., ge=-2, le=2)
	presence_penalty: float = Field(..., ge=-2, le=2)


class ChunkDelta(BaseModel):
	model_config = ConfigDict(extra="ignore")

	role: Optional[str] = None
	content: Optional[str] = None


class ChunkChoice(BaseModel):
	model_config = ConfigDict(extra="ignore")

	index: int = 0
	delta: Optional[ChunkDelta] = None
	finish_reason: Optional[str] = None


class ChatCompletionChunk(BaseModel):
	model_config = ConfigDict(extra="ignore")

	id: Optional[str] = None
	object: Optional[str] = None
	model: Optional[str] = None
	choices: List[ChunkChoice] = Field(default_factory=list)

	def delta_text(self) -> str:
		if not self.choices:
			return ""
		delta = self.choices[0].delta
		if delta is None or not delta.content:
			return ""
		return delta.content


class VendorErrorDetail(BaseModel):
	model_config = ConfigDict(extra="ignore")

	message: str = ""
	type: Optional[str] = None
	param: Optional[str] = None
	code: Optional[str] = None


class VendorErrorBody(BaseModel):
	model_config = ConfigDict(extra="ignore")

	error: VendorErrorDetail


class VendorModel(BaseModel):
	model_config = ConfigDict(extra="ignore")

	id: str


class VendorModelList(BaseModel):
	model_config = ConfigDict(extra="ignore")

	data: List[VendorModel] = Field(default_factory=list)


class WebhookRequest(BaseModel):
	model_config = ConfigDict(extra="forbid")

	messages: List[OutboundMessage]


class WebhookErrorBody(BaseModel):
	model_config = ConfigDict(extra="ignore")

	error: Optional[str] = None


class BackendStatusData(BaseModel):
	model_config = ConfigDict(extra="forbid")

	backend: Literal["openai", "n8n"]
	ready: bool
	model: Optional[str] = None
	has_api_key: bool = False
	warnings: List[str] = Field(default_factory=list)
