"""
Service ticket produced from a call transcript.

Field aliases are the exact JSON keys requested from the extraction model,
so ``Ticket.model_validate`` accepts the model output directly and
``model_dump(by_alias=True)`` reproduces it.
"""

import unicodedata
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

SERVICE_CATEGORIES: List[str] = [
    "fontanería",
    "electricidad",
    "cerrajería",
    "persianas",
    "electrodomésticos",
    "pintura",
    "mantenimiento",
    "aire acondicionado",
    "termo",
    "otro",
]

OTHER_SERVICE = "otro"

YES = "si"
NO = "no"
NOT_APPLICABLE = "n-a"

NO_TRANSCRIPTION_NOTE = "Sin transcripción (posible fallo de audio)."


def _fold(value: str) -> str:
    """Lowercase and strip accents for tolerant comparisons."""
    decomposed = unicodedata.normalize("NFKD", value.strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


_SERVICE_LOOKUP = {_fold(name): name for name in SERVICE_CATEGORIES}


def normalize_service(value: str) -> str:
    """Map a free-form service name onto the closed vocabulary."""
    if not value or not value.strip():
        return ""
    return _SERVICE_LOOKUP.get(_fold(value), OTHER_SERVICE)


def normalize_yes_no(value: str) -> str:
    folded = _fold(value or "")
    if folded in ("si", "yes", "true"):
        return YES
    if folded in ("no", "false"):
        return NO
    return ""


class Ticket(BaseModel):
    """Structured intake ticket. Every field is a string, empty when unknown."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field("", alias="nombre")
    phone: str = Field("", alias="telefono")
    address: str = Field("", alias="direccion")
    zone: str = Field("", alias="zona")
    service: str = Field("", alias="servicio")
    fault: str = Field("", alias="averia")
    urgent: str = Field("", alias="urgente")
    night_surcharge_accepted: str = Field("", alias="aceptoNocturno")
    notes: str = Field("", alias="notas")

    @field_validator("*", mode="before")
    @classmethod
    def coerce_to_str(cls, v: Any) -> str:
        """Models sometimes answer with null, numbers or booleans."""
        if v is None:
            return ""
        if isinstance(v, bool):
            return YES if v else NO
        return str(v).strip()

    @classmethod
    def from_extraction(cls, data: Dict[str, Any], night: bool) -> "Ticket":
        """
        Build a ticket from the extraction JSON and apply the business rules.

        Unknown keys are ignored. The night-surcharge answer only exists for
        night calls: it is forced to ``n-a`` by day and defaults to ``no`` at
        night when the caller never accepted it.
        """
        ticket = cls.model_validate(data)
        accepted = normalize_yes_no(ticket.night_surcharge_accepted)
        if not night:
            accepted = NOT_APPLICABLE
        elif not accepted:
            accepted = NO
        return ticket.model_copy(
            update={
                "service": normalize_service(ticket.service),
                "urgent": normalize_yes_no(ticket.urgent),
                "night_surcharge_accepted": accepted,
            }
        )

    @classmethod
    def no_transcription(cls, night: bool) -> "Ticket":
        """Fixed ticket used when the call produced no transcript at all."""
        return cls(
            night_surcharge_accepted=NO if night else NOT_APPLICABLE,
            notes=NO_TRANSCRIPTION_NOTE,
        )
