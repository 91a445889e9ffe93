"""
Argument models and descriptions for the scheduling tools exposed to the
language model.

Each tool's JSON-schema function declaration is generated from its argument
model, so the schema the model sees and the validation applied to its calls
cannot drift apart.
"""
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from clinic_scheduler.models.appointment import AppointmentCreate


class ToolArgs(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _blank_strings_are_missing(cls, data):
        # models often send "" for optional fields they have no value for
        if isinstance(data, dict):
            return {k: (None if isinstance(v, str) and not v.strip() else v) for k, v in data.items()}
        return data


class SpecialtyRef(ToolArgs):
    specialty_id: int | None = Field(default=None, description="ID da especialidade (opcional)")
    specialty_name: str | None = Field(
        default=None, description="Nome da especialidade, ex.: Cardiologia ou cardiologista (opcional)"
    )

    @property
    def ref(self) -> int | str | None:
        return self.specialty_id if self.specialty_id is not None else self.specialty_name


class ValidateDateTimeArgs(ToolArgs):
    date_text: str = Field(min_length=1, description="Texto de data/hora em pt-BR, ex.: 04/09 às 14h, amanhã")


class BookAppointmentArgs(AppointmentCreate):
    pass


class ListSpecialtiesArgs(ToolArgs):
    pass


class ListDoctorsArgs(ToolArgs):
    search: str | None = Field(default=None, description="Nome ou parte do nome do médico, como o paciente escreveu")
    limit: int | None = Field(default=None, description="Máximo de médicos a retornar (padrão 50)")


class ListDoctorsBySpecialtyArgs(SpecialtyRef):
    limit: int | None = Field(default=None, description="Máximo de médicos a retornar (padrão 50)")


class ListDoctorSlotsArgs(ToolArgs):
    doctor_id: int = Field(description="ID do médico")
    day: str | None = Field(default=None, description="YYYY-MM-DD no fuso da clínica (padrão = amanhã)")
    limit: int | None = Field(default=None, description="Máximo de horários (padrão 12)")


class ListSpecialtySlotsArgs(SpecialtyRef):
    day: str | None = Field(default=None, description="YYYY-MM-DD no fuso da clínica (padrão = amanhã)")
    limit: int | None = Field(default=None, description="Máximo de horários (padrão 12)")


class WeeklyDoctorAgendaArgs(ToolArgs):
    doctor_id: int = Field(description="ID do médico")


class WeeklySpecialtyAgendaArgs(SpecialtyRef):
    pass


class NextAvailableDoctorDayArgs(ToolArgs):
    doctor_id: int = Field(description="ID do médico")
    from_day: str | None = Field(
        default=None, alias="from", description="YYYY-MM-DD (opcional, padrão = agora no fuso da clínica)"
    )


class NextAvailableSpecialtyDayArgs(SpecialtyRef):
    from_day: str | None = Field(
        default=None, alias="from", description="YYYY-MM-DD (opcional, padrão = agora no fuso da clínica)"
    )


class CancelAppointmentArgs(ToolArgs):
    appointment_id: int = Field(description="ID do agendamento")


# name -> (description, argument model)
TOOL_DECLARATIONS: dict[str, tuple[str, type[BaseModel]]] = {
    "validateDateTime": (
        "Valida/normaliza a data e hora informadas pelo paciente. Rejeita datas passadas.",
        ValidateDateTimeArgs,
    ),
    "bookAppointment": (
        "Cria um agendamento de consulta reservando um horário livre. Use slotId quando o paciente "
        "escolheu um horário listado, ou desiredDate + doctorId.",
        BookAppointmentArgs,
    ),
    "listSpecialties": ("Retorna a lista de especialidades.", ListSpecialtiesArgs),
    "listDoctors": (
        "Lista médicos. Com search, resolve o nome do médico e indica resolvedId ou ambiguous.",
        ListDoctorsArgs,
    ),
    "listDoctorsBySpecialty": ("Lista médicos de uma especialidade.", ListDoctorsBySpecialtyArgs),
    "listDoctorSlots": ("Lista horários livres de um médico em um dia.", ListDoctorSlotsArgs),
    "listSpecialtySlots": (
        "Lista horários livres dos médicos de uma especialidade em um dia.",
        ListSpecialtySlotsArgs,
    ),
    "weeklyDoctorAgenda": (
        "Lista os horários livres do médico de hoje até domingo, no fuso da clínica.",
        WeeklyDoctorAgendaArgs,
    ),
    "weeklySpecialtyAgenda": (
        "Lista os horários livres da especialidade de hoje até domingo, no fuso da clínica.",
        WeeklySpecialtyAgendaArgs,
    ),
    "nextAvailableDoctorDay": (
        "Encontra a primeira data com horário livre do médico e retorna os horários desse dia.",
        NextAvailableDoctorDayArgs,
    ),
    "nextAvailableSpecialtyDay": (
        "Encontra a primeira data com horário livre na especialidade e retorna os horários desse dia.",
        NextAvailableSpecialtyDayArgs,
    ),
    "cancelAppointment": (
        "Cancela um agendamento e libera o horário. Pode ser repetido com segurança.",
        CancelAppointmentArgs,
    ),
}


def function_declaration(name: str) -> dict:
    description, args_model = TOOL_DECLARATIONS[name]
    schema = args_model.model_json_schema(by_alias=True)
    return {
        "name": name,
        "description": description,
        "parameters": {
            "type": "object",
            "properties": schema.get("properties", {}),
            "required": schema.get("required", []),
        },
    }
