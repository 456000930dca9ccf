"""
Certification-body workflow: applications move through a fixed status machine and end in
an issued certificate.

    new -> reviewing | rejected
    reviewing -> approved | rejected
    approved -> certified | rejected
    rejected -> new          (resubmission)
    certified                (terminal)

Ingredient analysis is requested from the Islamic Analysis Agent over the event bus, never
called directly, so the workflow only depends on the bus contract.
"""
import asyncio
import logging
import random
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from core.config import CERTIFICATE_VALIDITY_DAYS, EVENT_WAIT_TIMEOUT
from core.events import AnalysisRequested, EventBus, EventType
from core.models.classification import AnalysisContext, HalalStatus
from core.storage import RecordStore, generate_id

logger = logging.getLogger(__name__)

WORKFLOW_SOURCE = "certification-workflow"
_SECONDS_PER_DAY = 24 * 60 * 60


class ApplicationStatus(str, Enum):
    NEW = "new"
    REVIEWING = "reviewing"
    APPROVED = "approved"
    CERTIFIED = "certified"
    REJECTED = "rejected"


class CertificateStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


ALLOWED_TRANSITIONS: dict[ApplicationStatus, frozenset] = {
    ApplicationStatus.NEW: frozenset({ApplicationStatus.REVIEWING, ApplicationStatus.REJECTED}),
    ApplicationStatus.REVIEWING: frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}),
    ApplicationStatus.APPROVED: frozenset({ApplicationStatus.CERTIFIED, ApplicationStatus.REJECTED}),
    ApplicationStatus.REJECTED: frozenset({ApplicationStatus.NEW}),
    ApplicationStatus.CERTIFIED: frozenset(),
}


def validate_transition(current: ApplicationStatus, new: ApplicationStatus) -> None:
    if new not in ALLOWED_TRANSITIONS[current]:
        raise ValueError(f"Invalid status transition: {current.value} -> {new.value}")


@dataclass
class Application:
    id: str
    client_name: str
    product_name: str
    ingredients: list[str]
    status: ApplicationStatus = ApplicationStatus.NEW
    analysis: Optional[dict[str, Any]] = None
    notes: list[str] = field(default_factory=list)
    created_at: float = 0.0
    updated_at: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "client_name": self.client_name,
            "product_name": self.product_name,
            "ingredients": list(self.ingredients),
            "status": self.status.value,
            "analysis": self.analysis,
            "notes": list(self.notes),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Application":
        return cls(
            id=d["id"],
            client_name=d.get("client_name", ""),
            product_name=d.get("product_name", ""),
            ingredients=list(d.get("ingredients", [])),
            status=ApplicationStatus(d.get("status", "new")),
            analysis=d.get("analysis"),
            notes=list(d.get("notes", [])),
            created_at=d.get("created_at", 0.0),
            updated_at=d.get("updated_at", 0.0),
        )


@dataclass
class Certificate:
    id: str
    certificate_number: str
    application_id: str
    client_name: str
    product_name: str
    issued_at: float
    expires_at: float
    status: CertificateStatus = CertificateStatus.ACTIVE
    analysis: Optional[dict[str, Any]] = None
    notes: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "certificate_number": self.certificate_number,
            "application_id": self.application_id,
            "client_name": self.client_name,
            "product_name": self.product_name,
            "issued_at": self.issued_at,
            "expires_at": self.expires_at,
            "status": self.status.value,
            "analysis": self.analysis,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Certificate":
        return cls(
            id=d["id"],
            certificate_number=d["certificate_number"],
            application_id=d["application_id"],
            client_name=d.get("client_name", ""),
            product_name=d.get("product_name", ""),
            issued_at=d["issued_at"],
            expires_at=d["expires_at"],
            status=CertificateStatus(d.get("status", "active")),
            analysis=d.get("analysis"),
            notes=d.get("notes", ""),
        )


def _certificate_number(now: float) -> str:
    return f"HC-{datetime.fromtimestamp(now).year}-{random.randint(0, 9999):04d}"


class CertificationWorkflow:
    def __init__(
        self,
        event_bus: EventBus,
        applications: RecordStore,
        certificates: RecordStore,
        validity_days: int = CERTIFICATE_VALIDITY_DAYS,
        clock: Callable[[], float] = time.time,
    ):
        self.event_bus = event_bus
        self._applications = applications
        self._certificates = certificates
        self._validity_seconds = validity_days * _SECONDS_PER_DAY
        self._clock = clock
        # guards read-check-write sequences on application and certificate records
        self._lock = threading.RLock()

    # --- applications ---

    def create_application(self, client_name: str, product_name: str, ingredients: list[str]) -> Application:
        if not ingredients:
            raise ValueError("An application needs at least one ingredient")
        now = self._clock()
        app = Application(
            id=generate_id("APP"),
            client_name=client_name,
            product_name=product_name,
            ingredients=list(ingredients),
            created_at=now,
            updated_at=now,
        )
        self._applications.save(app.id, app.to_dict())
        logger.info("WORKFLOW application_created id=%s product=%s", app.id, product_name[:60])
        return app

    def get_application(self, app_id: str) -> Application:
        raw = self._applications.get(app_id)
        if raw is None:
            raise LookupError(f"Application not found: {app_id}")
        return Application.from_dict(raw)

    def list_applications(self, status: Optional[ApplicationStatus] = None) -> list[Application]:
        apps = [Application.from_dict(d) for d in self._applications.list()]
        if status is not None:
            apps = [a for a in apps if a.status == status]
        return apps

    def update_status(self, app_id: str, new_status: ApplicationStatus, note: Optional[str] = None) -> Application:
        with self._lock:
            app = self.get_application(app_id)
            validate_transition(app.status, new_status)
            old = app.status
            app.status = new_status
            if note:
                app.notes.append(note)
            app.updated_at = self._clock()
            self._applications.save(app.id, app.to_dict())
        logger.info("WORKFLOW status id=%s %s->%s", app.id, old.value, new_status.value)
        return app

    async def request_analysis(
        self,
        app_id: str,
        context: Optional[AnalysisContext] = None,
        timeout: float = EVENT_WAIT_TIMEOUT,
    ) -> Application:
        """Ask the analysis agent over the bus; stores the result on the application."""
        app = self.get_application(app_id)
        payload = AnalysisRequested(
            product_name=app.product_name,
            ingredients=app.ingredients,
            context=context or AnalysisContext(),
        ).to_dict()
        response = await self.event_bus.request(
            EventType.ANALYSIS_REQUESTED.value,
            EventType.ANALYSIS_RESPONSE.value,
            payload,
            timeout=timeout,
            source=WORKFLOW_SOURCE,
        )
        if response.data.get("error"):
            raise RuntimeError(f"Analysis failed for {app_id}: {response.data['error']}")

        app = await asyncio.to_thread(self._store_analysis, app_id, response.data["result"])
        logger.info(
            "WORKFLOW analysis_stored id=%s overall_status=%s",
            app.id, app.analysis.get("overall_status"),
        )
        return app

    def _store_analysis(self, app_id: str, analysis: dict[str, Any]) -> Application:
        # reload: the application may have changed while waiting
        with self._lock:
            app = self.get_application(app_id)
            app.analysis = analysis
            app.updated_at = self._clock()
            self._applications.save(app.id, app.to_dict())
        return app

    # --- certificates ---

    def issue_certificate(self, app_id: str) -> Certificate:
        """At most one certificate per application: the CERTIFIED transition is taken before saving."""
        with self._lock:
            app = self.get_application(app_id)
            if app.status != ApplicationStatus.APPROVED:
                raise ValueError("Application must be approved before certificate generation")
            if app.analysis is None:
                raise ValueError("Application has no ingredient analysis")
            if app.analysis.get("overall_status") == HalalStatus.HARAM.value:
                raise ValueError("Cannot certify a product whose analysis is HARAM")

            now = self._clock()
            cert = Certificate(
                id=generate_id("CERT"),
                certificate_number=_certificate_number(now),
                application_id=app.id,
                client_name=app.client_name,
                product_name=app.product_name,
                issued_at=now,
                expires_at=now + self._validity_seconds,
                analysis=app.analysis,
                notes=f"Certificate issued for {app.product_name}",
            )
            self.update_status(app.id, ApplicationStatus.CERTIFIED, note=f"Certificate {cert.certificate_number} issued")
            self._certificates.save(cert.id, cert.to_dict())
        logger.info("WORKFLOW certificate_issued id=%s application=%s", cert.id, app.id)
        return cert

    def get_certificate(self, cert_id: str) -> Certificate:
        """Stored certificate; an active one past its expiry is reported as expired."""
        raw = self._certificates.get(cert_id)
        if raw is None:
            raise LookupError(f"Certificate not found: {cert_id}")
        cert = Certificate.from_dict(raw)
        if cert.status == CertificateStatus.ACTIVE and self._clock() >= cert.expires_at:
            cert.status = CertificateStatus.EXPIRED
        return cert

    def revoke_certificate(self, cert_id: str) -> Certificate:
        with self._lock:
            cert = self.get_certificate(cert_id)
            if cert.status == CertificateStatus.REVOKED:
                raise ValueError(f"Certificate already revoked: {cert_id}")
            cert.status = CertificateStatus.REVOKED
            self._certificates.save(cert.id, cert.to_dict())
        logger.info("WORKFLOW certificate_revoked id=%s", cert.id)
        return cert
