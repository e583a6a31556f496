# app/errors.py
"""
Errores de dominio del agendamiento. Los servicios los lanzan; main.py los
traduce a JSON con el status HTTP que corresponde a cada uno.
"""


class SchedulingError(Exception):
    code = "scheduling_error"
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidRequest(SchedulingError):
    code = "invalid_request"
    status_code = 400


class NotFound(SchedulingError):
    code = "not_found"
    status_code = 404


class SlotUnavailable(SchedulingError):
    code = "slot_unavailable"
    status_code = 409


class InvalidState(SchedulingError):
    code = "invalid_state"
    status_code = 409
