from typing import Dict, List, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class CustomerCompanyMapEntry(BaseModel):
    attribute: str
    label: str
    column: str
    required: bool = False
    type: Literal["var", "int"] = "var"


def _default_company_map() -> List[CustomerCompanyMapEntry]:
    rows = [
        ("CustomerID", "CustomerID", "customer_id", True, "var"),
        ("CustomerCompanyName", "Customer", "name", True, "var"),
        ("CustomerCompanyStreet", "Street", "street", False, "var"),
        ("CustomerCompanyZIP", "Zip", "zip", False, "var"),
        ("CustomerCompanyCity", "City", "city", False, "var"),
        ("CustomerCompanyCountry", "Country", "country", False, "var"),
        ("CustomerCompanyURL", "URL", "url", False, "var"),
        ("CustomerCompanyComment", "Comment", "comments", False, "var"),
        ("ValidID", "Valid", "valid_id", True, "int"),
    ]
    return [
        CustomerCompanyMapEntry(attribute=a, label=lb, column=c, required=r, type=t)
        for a, lb, c, r, t in rows
    ]


class CustomerCompanySettings(BaseModel):
    table: str = "customer_company"
    key: str = "customer_id"
    map: List[CustomerCompanyMapEntry] = Field(default_factory=_default_company_map)
    valid_column: str = "valid_id"
    valid_ids: List[int] = Field(default_factory=lambda: [1])
    list_fields: List[str] = Field(default_factory=lambda: ["customer_id", "name"])
    search_fields: List[str] = Field(default_factory=lambda: ["customer_id", "name"])
    search_prefix: str = ""
    search_suffix: str = "*"
    search_list_limit: int | None = 250
    # external tables don't carry create_time/create_by/change_time/change_by
    foreign_db: bool = False


DEFAULT_BACKENDS: Dict[str, str] = {
    "Text": "supportdesk.dynamic_fields.backends:TextBackend",
    "TextArea": "supportdesk.dynamic_fields.backends:TextAreaBackend",
    "Checkbox": "supportdesk.dynamic_fields.backends:CheckboxBackend",
    "Dropdown": "supportdesk.dynamic_fields.backends:DropdownBackend",
    "DateTime": "supportdesk.dynamic_fields.backends:DateTimeBackend",
}


class Settings(BaseSettings):
    app_env: str = "dev"
    log_level: str = "INFO"
    database_url: str = "sqlite+aiosqlite:///./supportdesk.db"

    postmaster_max_emails: int = 40

    dynamic_field_backends: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_BACKENDS))
    customer_company: CustomerCompanySettings = Field(default_factory=CustomerCompanySettings)

    class Config:
        env_file = ".env"
        env_nested_delimiter = "__"
        extra = "ignore"

settings = Settings()
