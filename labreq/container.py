from __future__ import annotations

from dataclasses import dataclass

from labreq.application.services.form_controller import RequisitionFormController
from labreq.application.services.requisition_service import RequisitionService
from labreq.infrastructure.db.connectivity import EngineConnectivity
from labreq.infrastructure.db.repositories.requisition_repo import RequisitionRepository
from labreq.infrastructure.db.session import engine, session_scope


@dataclass
class Container:
    requisition_repo: RequisitionRepository
    requisition_service: RequisitionService

    def new_form(self, user_id: str | None) -> RequisitionFormController:
        return RequisitionFormController(self.requisition_service, user_id)

    def edit_form(self, user_id: str | None, requisition_id: str) -> RequisitionFormController | None:
        card = self.requisition_service.get_requisition(requisition_id)
        if card is None:
            return None
        return RequisitionFormController(
            self.requisition_service,
            user_id,
            form_data=card.form_data,
            card_id=card.id,
        )


def build_container() -> Container:
    requisition_repo = RequisitionRepository()
    requisition_service = RequisitionService(
        repo=requisition_repo,
        session_factory=session_scope,
        connectivity=EngineConnectivity(engine),
    )
    return Container(
        requisition_repo=requisition_repo,
        requisition_service=requisition_service,
    )
