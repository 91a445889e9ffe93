"""Scheduling error taxonomy.

Every error carries a short pt-BR ``user_message`` that is safe to show the
patient verbatim. Internal detail goes to the log, never into that field.
"""


class SchedulingError(Exception):
    user_message = "Não foi possível concluir a operação."

    def __init__(self, user_message: str | None = None, *, detail: str | None = None):
        if user_message:
            self.user_message = user_message
        self.detail = detail
        super().__init__(detail or self.user_message)


class InvalidInput(SchedulingError):
    user_message = "Dados inválidos. Verifique e envie novamente."


class InvalidBirthdate(InvalidInput):
    user_message = "Data de nascimento inválida. Use, por exemplo, 31/01/1990."


class InvalidDateTime(SchedulingError):
    user_message = (
        "Data/hora inválida. Informe dia/mês/ano e hora "
        '(ex.: 08/10/2025 14:00 ou "8 de outubro de 2025 às 14:00").'
    )


class InvalidDateFormat(InvalidDateTime):
    user_message = "Data inválida. Use o formato AAAA-MM-DD."


class AmbiguousReference(SchedulingError):
    user_message = "Encontrei mais de uma opção. Qual delas você quis dizer?"


class AmbiguousSlot(AmbiguousReference):
    user_message = (
        "Há mais de um médico com horário nesse momento. "
        "Informe o médico ou escolha um horário da lista."
    )


class SlotUnavailable(SchedulingError):
    user_message = "Horário indisponível."


class NotFound(SchedulingError):
    user_message = "Agendamento não encontrado."


class StoreFailure(SchedulingError):
    user_message = "Falha temporária ao acessar a agenda. Tente novamente em instantes."


class FatalInconsistency(StoreFailure):
    user_message = "Erro ao salvar o agendamento."
