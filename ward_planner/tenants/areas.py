# ward_planner/tenants/areas.py
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel


class AreaId(str, Enum):
    """The four fixed thematic areas every ward plan is made of."""
    FINDING = "finding"
    TEACHING = "teaching"
    NEW_MEMBERS = "new_members"
    RETURNING = "returning"


class ExampleGoal(BaseModel):
    """A sample goal offered as a starting point. `how` uses checklist markup."""
    what: str
    how: str
    when: str


class AreaConfig(BaseModel):
    """Display metadata for an area. Fixed per area, never edited by users."""
    id: AreaId
    title: str
    short_title: str
    subtitle: Optional[str] = None
    description: str
    color: str  # Tailwind color prefix (e.g. 'orange', 'sky')
    icon_name: str
    examples: List[ExampleGoal] = []


AREA_CONFIGS: Dict[AreaId, AreaConfig] = {
    AreaId.FINDING: AreaConfig(
        id=AreaId.FINDING,
        title="Encontrar personas",
        short_title="Encontrar",
        subtitle="Para que los misioneros les enseñen",
        description="Estrategias para contactar nuevas personas y compartir el mensaje.",
        color="orange",
        icon_name="user-plus",
        examples=[
            ExampleGoal(
                what="Invitar a 3 familias amigas a la noche de hogar",
                how="[ ] Hacer la lista de familias\n[ ] Invitar en persona\n[ ] Coordinar con los misioneros",
                when="Antes de fin de mes",
            ),
            ExampleGoal(
                what="Compartir un mensaje del Evangelio en redes sociales cada semana",
                how="[ ] Elegir un video o cita\n[ ] Publicarlo el domingo",
                when="Cada semana",
            ),
        ],
    ),
    AreaId.TEACHING: AreaConfig(
        id=AreaId.TEACHING,
        title="Personas recibiendo enseñanzas",
        short_title="Enseñando",
        subtitle="Apoyar a las personas a quienes los misioneros estén enseñando",
        description="Seguimiento al progreso de los investigadores actuales.",
        color="amber",
        icon_name="users",
        examples=[
            ExampleGoal(
                what="Acompañar a los misioneros en 2 lecciones",
                how="[ ] Preguntar a los misioneros sus citas\n[ ] Asignar un miembro para cada lección",
                when="Esta semana",
            ),
            ExampleGoal(
                what="Presentar un amigo del barrio a cada persona que recibe lecciones",
                how="[ ] Revisar la lista de personas con los misioneros\n[ ] Asignar amigos\n[ ] Invitarlos a la reunión sacramental",
                when="Próximo domingo",
            ),
        ],
    ),
    AreaId.NEW_MEMBERS: AreaConfig(
        id=AreaId.NEW_MEMBERS,
        title="Miembros nuevos",
        short_title="Nuevos Miembros",
        subtitle="Fortalecer a los miembros nuevos espiritualmente",
        description="Fortalecimiento de los miembros nuevos para su retención.",
        color="sky",
        icon_name="user-check",
        examples=[
            ExampleGoal(
                what="Asignar ministrantes a cada miembro nuevo",
                how="[ ] Hablar con la presidencia de cuórum y de la Sociedad de Socorro\n[ ] Presentar a los ministrantes",
                when="Dentro de la primera semana",
            ),
            ExampleGoal(
                what="Preparar a los miembros nuevos para ir al templo",
                how="[ ] Agendar una entrevista con el obispo\n[ ] Coordinar el transporte\n[ ] Acompañarlos en su primera visita",
                when="En los próximos 3 meses",
            ),
        ],
    ),
    AreaId.RETURNING: AreaConfig(
        id=AreaId.RETURNING,
        title="Miembros que regresan",
        short_title="Retorno",
        subtitle="Fortalecer a los miembros que regresan a la actividad",
        description="Apoyo a miembros menos activos para volver a la actividad.",
        color="emerald",
        icon_name="user-round",
        examples=[
            ExampleGoal(
                what="Visitar a 4 miembros menos activos",
                how="[ ] Pedir la lista al secretario\n[ ] Organizar las visitas con los ministrantes",
                when="Este mes",
            ),
            ExampleGoal(
                what="Invitar a una familia que regresa a dar una oración en la reunión sacramental",
                how="[ ] Hablar con el obispado\n[ ] Hacer la invitación con anticipación",
                when="Próximo mes",
            ),
        ],
    ),
}


def parse_area_id(value: str) -> AreaId:
    """Convert a raw area identifier into an AreaId.

    Raises:
        ValueError: If the value is not one of the four known areas.
    """
    try:
        return AreaId(value)
    except ValueError:
        known = ", ".join(a.value for a in AreaId)
        raise ValueError(f"Unknown area '{value}'. Expected one of: {known}.")
