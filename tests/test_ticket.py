"""Tests for the Ticket model and its business rules."""

import pytest
from pydantic import ValidationError

from marta.models.ticket import (
    NO_TRANSCRIPTION_NOTE,
    SERVICE_CATEGORIES,
    Ticket,
    normalize_service,
    normalize_yes_no,
)


def test_aliases_round_trip():
    ticket = Ticket.model_validate({"nombre": "Ana", "telefono": "600111222", "aceptoNocturno": "si"})

    assert ticket.name == "Ana"
    assert ticket.phone == "600111222"
    dumped = ticket.model_dump(by_alias=True)
    assert list(dumped) == [
        "nombre",
        "telefono",
        "direccion",
        "zona",
        "servicio",
        "averia",
        "urgente",
        "aceptoNocturno",
        "notas",
    ]


def test_fields_default_to_empty_strings():
    ticket = Ticket()
    assert all(value == "" for value in ticket.model_dump().values())


def test_non_string_values_are_coerced():
    ticket = Ticket.model_validate({"nombre": None, "telefono": 600111222, "urgente": True})

    assert ticket.name == ""
    assert ticket.phone == "600111222"
    assert ticket.urgent == "si"


def test_day_call_forces_not_applicable():
    ticket = Ticket.from_extraction({"aceptoNocturno": "si", "servicio": "termo"}, night=False)
    assert ticket.night_surcharge_accepted == "n-a"


@pytest.mark.parametrize(
    "answer, expected",
    [("si", "si"), ("Sí", "si"), ("no", "no"), ("", "no"), ("n-a", "no"), ("quizás", "no")],
)
def test_night_call_answer_is_yes_or_no(answer, expected):
    ticket = Ticket.from_extraction({"aceptoNocturno": answer}, night=True)
    assert ticket.night_surcharge_accepted == expected


def test_unknown_keys_are_ignored():
    ticket = Ticket.from_extraction({"nombre": "Luis", "precio": "100"}, night=False)
    assert ticket.name == "Luis"
    assert not hasattr(ticket, "precio")


def test_service_is_normalized():
    ticket = Ticket.from_extraction({"servicio": "Fontaneria"}, night=False)
    assert ticket.service == "fontanería"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("electricidad", "electricidad"),
        ("CERRAJERIA", "cerrajería"),
        ("  aire acondicionado ", "aire acondicionado"),
        ("jardinería", "otro"),
        ("", ""),
    ],
)
def test_normalize_service(value, expected):
    assert normalize_service(value) == expected


def test_every_category_maps_to_itself():
    for name in SERVICE_CATEGORIES:
        assert normalize_service(name) == name


@pytest.mark.parametrize("value, expected", [("SI", "si"), ("true", "si"), ("No", "no"), ("tal vez", "")])
def test_normalize_yes_no(value, expected):
    assert normalize_yes_no(value) == expected


def test_no_transcription_ticket():
    day = Ticket.no_transcription(night=False)
    night = Ticket.no_transcription(night=True)

    assert day.notes == NO_TRANSCRIPTION_NOTE
    assert day.night_surcharge_accepted == "n-a"
    assert night.night_surcharge_accepted == "no"
    assert night.service == ""


def test_ticket_is_immutable():
    ticket = Ticket(name="Ana")
    with pytest.raises(ValidationError):
        ticket.name = "Otra"
