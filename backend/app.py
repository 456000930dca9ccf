"""
HalalCheck AI FastAPI application.

Endpoints:
    GET  /                                   Health check
    POST /analyze                            Ingredient list (or raw list text) -> AnalysisResult
    POST /analyze-text                       Label/document text -> extraction -> AnalysisResult
    POST /scan                               Image -> OCR -> extraction -> AnalysisResult
    GET  /analyses/{analysis_id}             Stored analysis
    GET  /ingredients                        Knowledge base listing (q, status, category)
    GET  /ingredients/{name}                 Single-ingredient classification
    GET  /ingredients/{name}/similar         Similar knowledge-base names
    GET  /consensus/{ingredient}             Consensus analysis across schools
    GET  /consensus/{ingredient}/comparison  Markdown madhab comparison
    GET  /madhab/{madhab}/ruling/{ingredient} School-specific ruling (fatwa request over the bus)
    GET  /certification-bodies               Recognised certification bodies
    POST /verify                             Verify an ingredient (rules or certification body)
    POST /applications                       Create certification application
    GET  /applications/{app_id}              Get application
    POST /applications/{app_id}/status       Move application through the workflow
    POST /applications/{app_id}/analyze      Analyze application ingredients via the agent
    POST /applications/{app_id}/certificate  Issue certificate for an approved application
    GET  /certificates/{cert_id}             Get certificate
    POST /certificates/{cert_id}/revoke      Revoke certificate
    GET  /events/stats                       Event bus diagnostics
"""
from fastapi import FastAPI, UploadFile, File, Form, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import List, Dict, Literal, Optional
import asyncio
import logging
from dotenv import load_dotenv
from pathlib import Path

# Load env vars
load_dotenv(Path(__file__).parent / ".env")

# Initialize App
app = FastAPI(title="HalalCheck AI API")

from core.config import log_config
log_config()

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Logger
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# --- Eagerly import core modules (avoid repeated lazy imports) ---
from core.config import (
    AI_FALLBACK_ENABLED,
    get_analyses_path,
    get_applications_path,
    get_certificates_path,
    get_ollama_model,
    get_ollama_url,
)
from core.documents import extract_from_text
from core.enrichment import get_unknown_log
from core.evaluation.ingredient_analyzer import IngredientAnalyzer
from core.evaluation.islamic_analysis import IslamicAnalysisAgent
from core.events import EventBus, EventType, FatwaRequested
from core.external_apis import LLMClassifier
from core.models.classification import AnalysisContext, HalalStatus, Madhab
from core.normalization.parser import split_ingredient_list
from core.ontology.knowledge_base import get_knowledge_base
from core.scholarly import ScholarlyConsensusService
from core.storage import RecordStore, generate_id
from core.verification import HalalVerificationService
from core.workflow import ApplicationStatus, CertificationWorkflow

# Service imports (flat modules in backend/)
from ocr_engine import OCREngine

knowledge_base = get_knowledge_base()
analyzer = IngredientAnalyzer(knowledge_base, unknown_log=get_unknown_log())
# browsing lookups do not count towards the unknown-ingredients review queue
lookup_analyzer = IngredientAnalyzer(knowledge_base)
consensus = ScholarlyConsensusService()
verification = HalalVerificationService()
event_bus = EventBus()
analysis_agent = IslamicAnalysisAgent(
    event_bus,
    analyzer=analyzer,
    consensus=consensus,
    verification=verification,
    llm_classifier=LLMClassifier() if AI_FALLBACK_ENABLED else None,
)
analyses_store = RecordStore(get_analyses_path())
workflow = CertificationWorkflow(
    event_bus,
    applications=RecordStore(get_applications_path()),
    certificates=RecordStore(get_certificates_path()),
)

# PaddleOCR is heavy and optional; loaded on first /scan
_ocr_engine: Optional[OCREngine] = None


def get_ocr_engine() -> OCREngine:
    global _ocr_engine
    if _ocr_engine is None:
        _ocr_engine = OCREngine()
    return _ocr_engine


# --- Startup ---
@app.on_event("startup")
async def _warmup_ollama():
    """Pre-load the Ollama model so the first AI fallback is fast. Skipped when AI fallback is off."""
    if not AI_FALLBACK_ENABLED:
        return
    import threading

    def _ping():
        try:
            import requests as _req
            _req.post(
                get_ollama_url(),
                json={"model": get_ollama_model(), "prompt": "hi", "stream": False,
                      "options": {"num_predict": 1}},
                timeout=60,
            )
            logger.info("WARMUP Ollama model loaded successfully")
        except Exception as exc:
            logger.warning("WARMUP Ollama ping failed (non-fatal): %s", exc)

    threading.Thread(target=_ping, daemon=True).start()


# --- Request/Response Models ---
class ContextBody(BaseModel):
    madhab: Optional[Madhab] = None
    strictness_level: Optional[Literal["strict", "moderate", "lenient"]] = None
    include_scholarly_differences: bool = False
    product_type: Optional[str] = None
    manufacturing_process: Optional[str] = None
    source_country: Optional[str] = None


class AnalyzeRequest(BaseModel):
    product_name: str = Field(min_length=1)
    ingredients: Optional[List[str]] = None
    raw_text: Optional[str] = None
    context: Optional[ContextBody] = None


class AnalyzeTextRequest(BaseModel):
    product_name: str = Field(min_length=1)
    text: str
    processing_method: Literal["text", "manual"] = "text"
    context: Optional[ContextBody] = None


class VerifyRequest(BaseModel):
    ingredient: str = Field(min_length=1)
    certification_body: Optional[str] = None


class ApplicationBody(BaseModel):
    client_name: str = Field(min_length=1)
    product_name: str = Field(min_length=1)
    ingredients: List[str]


class StatusBody(BaseModel):
    status: ApplicationStatus
    note: Optional[str] = None


class ApplicationAnalyzeBody(BaseModel):
    context: Optional[ContextBody] = None


# --- Helper Functions ---

def _to_context(body: Optional[ContextBody]) -> AnalysisContext:
    return AnalysisContext.from_dict(body.model_dump(mode="json") if body else None)


def _http_error(e: Exception, what: str) -> HTTPException:
    """Business errors -> 4xx; anything else is a bug or infrastructure failure -> 500."""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, ValueError):
        logger.info("%s rejected: %s", what, e)
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, LookupError):
        return HTTPException(status_code=404, detail=str(e).strip("'\""))
    logger.error("%s failed: %s", what, e, exc_info=True)
    return HTTPException(status_code=500, detail=str(e))


async def _analyze_and_store(product_name: str, ingredients: List[str], context: AnalysisContext) -> Dict:
    ingredients = [i.strip() for i in ingredients if i and i.strip()]
    if not ingredients:
        raise ValueError("Ingredient list is empty")
    result = await analysis_agent.process(product_name, ingredients, context)
    result.analysis_id = generate_id("ANL")
    body = result.to_dict()
    await asyncio.to_thread(analyses_store.save, result.analysis_id, body)
    return body


# --- Endpoints ---

@app.get("/")
def health_check():
    return {
        "status": "ok",
        "service": "HalalCheck AI",
        "knowledge_base_version": knowledge_base.get_version(),
        "ingredients": len(knowledge_base),
        "ai_fallback": analysis_agent.ai_fallback,
    }


@app.post("/analyze")
async def analyze(request: AnalyzeRequest):
    """Ingredient list (or comma-separated raw text) -> stored AnalysisResult."""
    logger.info("Analyze request product=%s", request.product_name[:60])
    try:
        ingredients = request.ingredients
        if not ingredients and request.raw_text:
            ingredients = split_ingredient_list(request.raw_text)
        return await _analyze_and_store(request.product_name, ingredients or [], _to_context(request.context))
    except Exception as e:
        raise _http_error(e, "Analyze")


@app.post("/analyze-text")
async def analyze_text(request: AnalyzeTextRequest):
    """Label or document text -> ingredient section -> analysis."""
    try:
        doc = extract_from_text(request.text, request.processing_method)
        if not doc.ingredients:
            raise ValueError("No ingredient list found in text")
        analysis = await _analyze_and_store(request.product_name, doc.ingredients, _to_context(request.context))
        return {"extraction": doc.to_dict(), "analysis": analysis}
    except Exception as e:
        raise _http_error(e, "Analyze text")


@app.post("/scan")
async def scan_image(
    file: UploadFile = File(...),
    product_name: str = Form("Scanned product"),
    madhab: Optional[Madhab] = Form(None),
):
    """OCR -> ingredient extraction -> Islamic analysis."""
    logger.info("Scan request filename=%s", file.filename)
    try:
        image_bytes = await file.read()
        try:
            engine = get_ocr_engine()
        except ImportError as e:
            logger.warning("OCR unavailable: %s", e)
            raise HTTPException(status_code=503, detail="OCR support is not installed")
        extracted = await asyncio.to_thread(engine.extract_text, image_bytes)
        logger.info("OCR extracted %d chars confidence=%s", len(extracted.text), extracted.confidence)

        doc = extract_from_text(extracted.text, "ocr", source_confidence=extracted.confidence)
        if not doc.ingredients:
            raise ValueError("No ingredient list found in image")
        analysis = await _analyze_and_store(product_name, doc.ingredients, AnalysisContext(madhab=madhab))
        return {"extraction": doc.to_dict(), "analysis": analysis}
    except Exception as e:
        raise _http_error(e, "Scan")


@app.get("/analyses/{analysis_id}")
def get_analysis(analysis_id: str):
    record = analyses_store.get(analysis_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Analysis not found: {analysis_id}")
    return record


@app.get("/ingredients")
def list_ingredients(
    q: Optional[str] = None,
    status: Optional[HalalStatus] = None,
    category: Optional[str] = None,
):
    entries = knowledge_base.search_ingredients(q) if q else knowledge_base.get_all_classifications()
    if status is not None:
        entries = [e for e in entries if e.status == status]
    if category:
        entries = [e for e in entries if e.category.lower() == category.lower()]
    return {"count": len(entries), "ingredients": [e.to_dict() for e in entries]}


@app.get("/ingredients/{name}")
def get_ingredient(name: str, madhab: Optional[Madhab] = None):
    return lookup_analyzer.analyze_ingredient(name, AnalysisContext(madhab=madhab)).to_dict()


@app.get("/ingredients/{name}/similar")
def similar_ingredients(name: str, limit: int = Query(5, ge=1, le=20)):
    return {"ingredient": name, "similar": lookup_analyzer.get_similar_ingredients(name, limit)}


@app.get("/consensus/{ingredient}")
def get_consensus(ingredient: str):
    return consensus.get_consensus_analysis(ingredient).to_dict()


@app.get("/consensus/{ingredient}/comparison")
def get_madhab_comparison(ingredient: str):
    return {"ingredient": ingredient, "comparison": consensus.generate_madhab_comparison(ingredient)}


@app.get("/madhab/{madhab}/ruling/{ingredient}")
async def get_madhab_ruling(madhab: Madhab, ingredient: str):
    """School-specific ruling, answered by the analysis agent over the event bus."""
    try:
        response = await event_bus.request(
            EventType.FATWA_REQUESTED.value,
            EventType.FATWA_RESPONSE.value,
            FatwaRequested(ingredient=ingredient, madhab=madhab).to_dict(),
            timeout=5,
            source="http-api",
        )
        return {"ingredient": ingredient, "madhab": madhab.value, "ruling": response.data.get("ruling")}
    except TimeoutError as e:
        logger.error("Fatwa request timed out: %s", e)
        raise HTTPException(status_code=504, detail=str(e))


@app.get("/certification-bodies")
def list_certification_bodies():
    return {"certification_bodies": [b.to_dict() for b in verification.get_certification_bodies()]}


@app.post("/verify")
def verify_ingredient(request: VerifyRequest):
    """Rule-based verification, or a certification-body lookup when a body is named."""
    try:
        if request.certification_body:
            result = verification.request_certification_body_verification(
                request.ingredient, request.certification_body,
            )
            if result is None:
                raise LookupError(f"Unknown certification body: {request.certification_body}")
        else:
            result = verification.verify_ingredient(request.ingredient)
        if result is None:
            return {"ingredient": request.ingredient, "verified": False, "result": None, "report": None}
        return {
            "ingredient": request.ingredient,
            "verified": True,
            "result": result.to_dict(),
            "report": verification.generate_verification_report(request.ingredient, result),
        }
    except Exception as e:
        raise _http_error(e, "Verify")


@app.post("/applications")
def create_application(body: ApplicationBody):
    try:
        return workflow.create_application(body.client_name, body.product_name, body.ingredients).to_dict()
    except Exception as e:
        raise _http_error(e, "Create application")


@app.get("/applications/{app_id}")
def get_application(app_id: str):
    try:
        return workflow.get_application(app_id).to_dict()
    except Exception as e:
        raise _http_error(e, "Get application")


@app.post("/applications/{app_id}/status")
def update_application_status(app_id: str, body: StatusBody):
    try:
        return workflow.update_status(app_id, body.status, body.note).to_dict()
    except Exception as e:
        raise _http_error(e, "Update application status")


@app.post("/applications/{app_id}/analyze")
async def analyze_application(app_id: str, body: Optional[ApplicationAnalyzeBody] = None):
    try:
        context = _to_context(body.context if body else None)
        return (await workflow.request_analysis(app_id, context)).to_dict()
    except TimeoutError as e:
        logger.error("Application analysis timed out: %s", e)
        raise HTTPException(status_code=504, detail=str(e))
    except Exception as e:
        raise _http_error(e, "Analyze application")


@app.post("/applications/{app_id}/certificate")
def issue_certificate(app_id: str):
    try:
        return workflow.issue_certificate(app_id).to_dict()
    except Exception as e:
        raise _http_error(e, "Issue certificate")


@app.get("/certificates/{cert_id}")
def get_certificate(cert_id: str):
    try:
        return workflow.get_certificate(cert_id).to_dict()
    except Exception as e:
        raise _http_error(e, "Get certificate")


@app.post("/certificates/{cert_id}/revoke")
def revoke_certificate(cert_id: str):
    try:
        return workflow.revoke_certificate(cert_id).to_dict()
    except Exception as e:
        raise _http_error(e, "Revoke certificate")


@app.get("/events/stats")
def event_stats():
    return event_bus.get_stats()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host="0.0.0.0", port=8000, reload=True)
