import pytest

from services.rava_historicos import RavaHistoricosService, normalize_row
from shared.errors import ExternalAPIError, RavaTokenError


class _Client:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def fetch_historicos(self, especie, fecha_inicio=None, fecha_fin=None):
        self.calls.append((especie, fecha_inicio, fecha_fin))
        if self.error is not None:
            raise self.error
        return self.result


ROWS = [
    {"fecha": "2024-04-30", "apertura": "100,5", "maximo": 110, "minimo": 99, "cierre": "105", "volumen_nominal": "1000"},
    {"fecha": "2024-05-02", "apertura": 106, "cierre": 108.25, "volumen": 2500, "variacion": "2,9", "ajuste": None},
    "junk",
    {"fecha": "2024-05-01", "cierre": 105.2},
]


def test_historicos_sorts_newest_first_and_builds_meta():
    client = _Client({"body": ROWS})
    result = RavaHistoricosService(client).historicos(" GGAL ", "2024-04-01")

    assert client.calls == [("GGAL", "2024-04-01", None)]
    assert [item["fecha"] for item in result["items"]] == ["2024-05-02", "2024-05-01", "2024-04-30"]
    assert result["meta"] == {
        "count": 3,
        "symbol": "GGAL",
        "from": "2024-04-30",
        "to": "2024-05-02",
        "as_of": "2024-05-02",
        "source": "rava",
    }


def test_normalize_row_accepts_comma_decimals_and_volume_fallback():
    item = normalize_row(ROWS[0], "GGAL")
    assert item["apertura"] == 100.5
    assert item["cierre"] == 105.0
    assert item["volumen"] == 1000.0
    assert item["especie"] == "GGAL"
    assert item["as_of"] == "2024-04-30T00:00:00-03:00"

    latest = normalize_row(ROWS[1], "GGAL")
    assert latest["volumen"] == 2500.0
    assert latest["variacion"] == 2.9
    assert latest["ajuste"] is None
    assert latest["maximo"] is None


def test_empty_body_has_null_range():
    result = RavaHistoricosService(_Client({"body": []})).historicos("GGAL")
    assert result["items"] == []
    assert result["meta"]["from"] is None
    assert result["meta"]["as_of"] is None


def test_client_failures_are_reraised_as_external_api_error():
    service = RavaHistoricosService(_Client(error=RavaTokenError("No se pudo extraer access_token de RAVA")))
    with pytest.raises(ExternalAPIError, match="No se pudo obtener histórico desde RAVA") as excinfo:
        service.historicos("GGAL")
    assert excinfo.value.status_code == 502
    assert isinstance(excinfo.value.__cause__, RavaTokenError)


def test_blank_especie_is_rejected():
    with pytest.raises(ValueError):
        RavaHistoricosService(_Client()).historicos("")
