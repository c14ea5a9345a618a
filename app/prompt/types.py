from pydantic import BaseModel, Field


class PromptMessage(BaseModel):
    role: str
    content: str


class PromptTemplate(BaseModel):
    name: str = ""
    description: str = ""
    variables: dict[str, str] = Field(default_factory=dict)
    messages: list[PromptMessage] = Field(default_factory=list)

    def to_json(self) -> str:
        # description/variables are omitted when empty, matching stored files
        return self.model_dump_json(
            indent=2,
            exclude={
                key
                for key in ("description", "variables")
                if not getattr(self, key)
            },
        )
