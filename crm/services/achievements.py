# crm/services/achievements.py
"""
Conquistas do onboarding.

Cada conquista é uma condição pura sobre (dados do formulário, etapas
concluídas). O conjunto de desbloqueadas só cresce; no máximo uma
notificação de "nova conquista" fica pendente por vez.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional

Condition = Callable[[Mapping[str, Any], "frozenset[int]"], bool]


@dataclass(frozen=True)
class Achievement:
    id: str
    title: str
    description: str
    condition: Condition


def _filled(data: Mapping[str, Any], *keys: str) -> bool:
    return all(bool(data.get(k)) for k in keys)


ACHIEVEMENTS: tuple[Achievement, ...] = (
    Achievement("first_steps", "Primeiros Passos", "Iniciou o onboarding",
                lambda data, done: True),
    Achievement("company_setup", "Empresa Configurada", "Configurou os dados da conta",
                lambda data, done: _filled(data, "accountName")),
    Achievement("ai_enabled", "IA Ativada", "Habilitou a inteligência artificial",
                lambda data, done: data.get("enableAI") is True),
    Achievement("first_client", "Primeiro Cliente", "Cadastrou seu primeiro cliente",
                lambda data, done: _filled(data, "clientName", "clientPhone")),
    Achievement("first_product", "Primeiro Produto", "Criou seu primeiro produto",
                lambda data, done: _filled(data, "productName")),
    Achievement("first_event", "Primeiro Evento", "Agendou seu primeiro evento",
                lambda data, done: _filled(data, "eventTitle", "eventDate")),
    Achievement("team_builder", "Construtor de Equipe", "Convidou membros da equipe",
                lambda data, done: bool(str(data.get("inviteEmails") or "").strip())),
    Achievement("complete_setup", "Setup Completo", "Finalizou todas as etapas",
                lambda data, done: len(done) >= 6),
    # sem critério de tempo definido: nunca desbloqueia
    Achievement("speed_runner", "Speed Runner", "Completou em menos de 3 minutos",
                lambda data, done: False),
)

_BY_ID = {a.id: a for a in ACHIEVEMENTS}


@dataclass
class AchievementTracker:
    unlocked: list[str] = field(default_factory=lambda: ["first_steps"])
    pending_notification: Optional[str] = None

    @classmethod
    def from_state(cls, state: Mapping[str, Any] | None) -> "AchievementTracker":
        state = state or {}
        unlocked = [i for i in state.get("unlocked") or ["first_steps"] if i in _BY_ID]
        return cls(unlocked=unlocked, pending_notification=state.get("pending_notification"))

    def to_state(self) -> dict[str, Any]:
        return {"unlocked": list(self.unlocked), "pending_notification": self.pending_notification}

    def evaluate(self, data: Mapping[str, Any], completed_steps: Iterable[int]) -> list[str]:
        """Reavalia as condições; devolve os ids desbloqueados nesta chamada."""
        done = frozenset(completed_steps)
        newly: list[str] = []
        for achievement in ACHIEVEMENTS:
            if achievement.id in self.unlocked:
                continue
            if achievement.condition(data, done):
                self.unlocked.append(achievement.id)
                newly.append(achievement.id)
        # fila de uma posição: a última desbloqueada é a que aparece
        if newly:
            self.pending_notification = newly[-1]
        return newly

    def dismiss(self) -> None:
        self.pending_notification = None

    def summary(self) -> list[dict[str, Any]]:
        unlocked = set(self.unlocked)
        return [
            {"id": a.id, "title": a.title, "description": a.description, "unlocked": a.id in unlocked}
            for a in ACHIEVEMENTS
        ]

    @property
    def unlocked_count(self) -> int:
        return len(self.unlocked)

    @property
    def total_count(self) -> int:
        return len(ACHIEVEMENTS)
