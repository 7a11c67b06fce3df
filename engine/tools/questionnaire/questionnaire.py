"""
Vendor questionnaire scoring orchestration.

- classify each uploaded workbook by filename (Product / NFR / Cybersecurity /
  Agile / Procurement)
- parse and score every workbook of a vendor; procurement workbooks also
  yield the 5-year cost summary
- batch over vendors asynchronously; downloads go through the caller's
  `fetch` coroutine, parsing and scoring run in worker threads
- a document that cannot be fetched, parsed or scored is logged and marked
  unavailable for its questionnaire type only; the vendor and the batch go on
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, Sequence

from utils.core.errors import make_error_payload
from utils.core.log import (
    DEFAULT_LOGGER_NAME,
    get_logger,
    project_logger,
    set_logger,
    setup_logging,
)
from tools.questionnaire.questionnaire_builder import (
    generate_procurement_questionnaire,
    generate_questionnaire,
)
from tools.questionnaire.questionnaire_config import ScoringSettings, load_settings
from tools.questionnaire.questionnaire_cost import extract_procurement_costs
from tools.questionnaire.questionnaire_hybrid import calculate_hybrid_score
from tools.questionnaire.questionnaire_models import (
    HybridScore,
    QuestionnaireScore,
    VendorExcelScores,
    coerce_question_records,
)
from tools.questionnaire.questionnaire_parse_excel import parse_questionnaire
from tools.questionnaire.questionnaire_score import (
    average_questionnaire_score,
    calculate_questionnaire_score,
    extract_nfr_section_scores,
    map_nfr_to_characteristics,
)


ProgressCallback = Optional[Callable[[Dict[str, Any]], None]]
FetchFn = Callable[[str], Awaitable[bytes]]

PROCUREMENT = "Procurement"
PRODUCT = "Product"
NFR = "NFR"
CYBERSECURITY = "Cybersecurity"
AGILE = "Agile"

# First matching entry wins: "procurement_product_terms.xlsx" is Procurement
QUESTIONNAIRE_FILENAME_KEYWORDS: list[tuple[tuple[str, ...], str]] = [
    (("procurement", "commercial"), PROCUREMENT),
    (("product",), PRODUCT),
    (("nfr", "non-functional"), NFR),
    (("cybersecurity", "security"), CYBERSECURITY),
    (("agile",), AGILE),
]

SCORE_FIELDS = {
    PROCUREMENT: "procurement_score",
    PRODUCT: "product_score",
    NFR: "nfr_score",
    CYBERSECURITY: "cybersecurity_score",
    AGILE: "agile_score",
}


@dataclass
class VendorDocument:
    """
    A vendor upload.

    Attributes:
        file_name: Original filename (drives questionnaire classification)
        key: Object-store path handed to `fetch` when `data` is not loaded
        data: Workbook bytes, if already in memory
        error: Why the download failed, when it did
    """
    file_name: str
    key: str = ""
    data: Optional[bytes] = None
    error: Optional[Exception] = None


def _emit_progress(progress_callback: ProgressCallback, **payload: Any) -> None:
    if progress_callback:
        progress_callback(payload)


def _is_excel_key(key: str) -> bool:
    lower = key.lower()
    return lower.endswith(".xlsx") or lower.endswith(".xlsm")


def _filename_from_key(key: str) -> str:
    return key.rsplit("/", 1)[-1]


def classify_questionnaire(file_name: str) -> Optional[str]:
    name = _filename_from_key(file_name).lower()
    for keywords, questionnaire_type in QUESTIONNAIRE_FILENAME_KEYWORDS:
        if any(k in name for k in keywords):
            return questionnaire_type
    return None


def _score_workbook(
    questionnaire_type: str, data: bytes, settings: ScoringSettings
) -> QuestionnaireScore:
    result = parse_questionnaire(data, fuzzy_threshold=settings.header_fuzzy_threshold)
    if not result.recognized:
        raise ValueError("; ".join(result.warnings) or "structure not recognized")
    return calculate_questionnaire_score(result.answers, questionnaire_type)


def _mark_unavailable(
    scores: VendorExcelScores, questionnaire_type: str, payload: Dict[str, Any]
) -> None:
    # another document of the same type already produced the score
    if getattr(scores, SCORE_FIELDS[questionnaire_type]) is not None:
        get_logger().warning(
            "Ignoring failed %s document %s; score already set",
            questionnaire_type,
            payload.get("file"),
        )
        return
    scores.unavailable[questionnaire_type] = payload


def calculate_excel_scores_for_vendor(
    vendor_name: str,
    documents: Iterable[VendorDocument],
    settings: Optional[ScoringSettings] = None,
) -> VendorExcelScores:
    """
    Score every questionnaire workbook a vendor submitted.

    Documents must carry their bytes. Failures are scoped to the
    questionnaire type of the failing document and recorded in
    `unavailable`.
    """
    logger = get_logger()
    settings = settings or load_settings()
    scores = VendorExcelScores(vendor_name=vendor_name)

    for doc in documents:
        if not _is_excel_key(doc.file_name):
            continue
        questionnaire_type = classify_questionnaire(doc.file_name)
        if questionnaire_type is None:
            logger.debug("Skipping %s: not a recognised questionnaire", doc.file_name)
            continue
        if doc.data is None:
            _mark_unavailable(
                scores,
                questionnaire_type,
                make_error_payload(
                    "fetch", doc.error or "document not loaded", {"file": doc.file_name}
                ),
            )
            continue

        if questionnaire_type == PROCUREMENT:
            try:
                scores.procurement_cost_summary = extract_procurement_costs(doc.data)
                scores.unavailable.pop("ProcurementCost", None)
            except Exception as exc:
                logger.exception("Cost extraction failed for %s", doc.file_name)
                if scores.procurement_cost_summary is None:
                    scores.unavailable["ProcurementCost"] = make_error_payload(
                        "cost", exc, {"file": doc.file_name}
                    )

        try:
            score = _score_workbook(questionnaire_type, doc.data, settings)
        except Exception as exc:
            logger.exception("Failed to score %s (%s)", doc.file_name, questionnaire_type)
            _mark_unavailable(
                scores, questionnaire_type, make_error_payload("score", exc, {"file": doc.file_name})
            )
            continue

        setattr(scores, SCORE_FIELDS[questionnaire_type], score)
        scores.unavailable.pop(questionnaire_type, None)
        logger.info(
            "%s %s score %.1f (%d/%d answered)",
            vendor_name,
            questionnaire_type,
            score.overall_score,
            score.answered_questions,
            score.total_questions,
        )

    scores.average_score = average_questionnaire_score(scores)

    if scores.nfr_score is not None and scores.nfr_score.section_scores:
        scores.nfr_section_scores = extract_nfr_section_scores(scores.nfr_score.section_scores)
        cyber = scores.cybersecurity_score
        scores.characteristic_scores = map_nfr_to_characteristics(
            scores.nfr_section_scores,
            cyber.overall_score if cyber is not None else None,
        )

    return scores


async def _fetch_documents(
    documents: Sequence[VendorDocument], fetch: Optional[FetchFn]
) -> list[VendorDocument]:
    logger = get_logger()

    async def load(doc: VendorDocument) -> VendorDocument:
        if doc.data is not None or fetch is None or not _is_excel_key(doc.file_name):
            return doc
        try:
            data = await fetch(doc.key or doc.file_name)
        except Exception as exc:
            logger.exception("Download failed for %s", doc.key or doc.file_name)
            return VendorDocument(file_name=doc.file_name, key=doc.key, error=exc)
        return VendorDocument(file_name=doc.file_name, key=doc.key, data=data)

    return list(await asyncio.gather(*(load(d) for d in documents)))


async def score_vendors(
    vendors: Mapping[str, Sequence[VendorDocument]],
    fetch: Optional[FetchFn] = None,
    *,
    project_id: Optional[str] = None,
    settings: Optional[ScoringSettings] = None,
    progress_callback: ProgressCallback = None,
) -> Dict[str, VendorExcelScores]:
    """
    Score all vendors concurrently.

    Args:
        vendors: {vendor name: uploaded documents}
        fetch: Coroutine returning workbook bytes for an object-store key;
               only called for documents without `data`
        project_id: Enables the per-project debug log file
        settings: Scoring settings; load_settings() when omitted
        progress_callback: Receives {"stage", "message", ...} dicts

    Returns:
        {vendor name: VendorExcelScores}; a vendor that fails outright gets an
        empty result with a "vendor" entry in `unavailable`
    """
    settings = settings or load_settings()
    base_logger = (
        project_logger(project_id, "questionnaire_scoring")
        if project_id
        else logging.getLogger(DEFAULT_LOGGER_NAME)
    )
    start_t = time.perf_counter()

    _emit_progress(
        progress_callback,
        stage="score",
        message=f"Scoring {len(vendors)} vendor(s)",
        vendor_count=len(vendors),
    )

    async def score_one(vendor_name: str, documents: Sequence[VendorDocument]) -> VendorExcelScores:
        set_logger(
            base_logger,
            tool_name="score_vendor",
            project_id=project_id or "N/A",
            vendor_name=vendor_name,
            request_type="WORKER",
        )
        loaded = await _fetch_documents(documents, fetch)
        result = await asyncio.to_thread(
            calculate_excel_scores_for_vendor, vendor_name, loaded, settings
        )
        _emit_progress(
            progress_callback,
            stage="vendor_done",
            message=f"Scored {vendor_name}",
            vendor_name=vendor_name,
        )
        return result

    names = list(vendors)
    results = await asyncio.gather(
        *(score_one(name, vendors[name]) for name in names), return_exceptions=True
    )

    logger = get_logger()
    scored: Dict[str, VendorExcelScores] = {}
    for name, result in zip(names, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            logger.error("Scoring failed for vendor %s: %s", name, result, exc_info=result)
            scored[name] = VendorExcelScores(
                vendor_name=name,
                unavailable={"vendor": make_error_payload("score", result)},
            )
        else:
            scored[name] = result

    logger.info(
        "Scored %d vendor(s) in %.1fs", len(scored), time.perf_counter() - start_t
    )
    return scored


def blend_vendor_score(
    ai_score: float,
    vendor_scores: Optional[VendorExcelScores],
    settings: Optional[ScoringSettings] = None,
) -> HybridScore:
    """Blend an AI score with the vendor's average questionnaire score, if any."""
    settings = settings or load_settings()
    excel_score = None
    if vendor_scores is not None and any(
        s is not None
        for s in (
            vendor_scores.product_score,
            vendor_scores.nfr_score,
            vendor_scores.cybersecurity_score,
            vendor_scores.agile_score,
        )
    ):
        excel_score = vendor_scores.average_score
    return calculate_hybrid_score(
        ai_score, excel_score, settings.ai_weight, settings.excel_weight
    )


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

def _cmd_generate(args: argparse.Namespace) -> int:
    logger = get_logger()
    questions = coerce_question_records(Path(args.questions).read_text(encoding="utf-8"))
    if not questions:
        logger.error("No questions found in %s", args.questions)
        return 1
    settings = load_settings()
    output = args.output
    if output is None:
        stem = "procurement_questionnaire" if args.procurement else args.title
        output = Path(settings.output_dir) / f"{stem}.xlsx"
    if args.procurement:
        path = generate_procurement_questionnaire(questions, output, settings=settings)
    else:
        path = generate_questionnaire(args.title, questions, output)
    print(path)
    return 0


def _cmd_score(args: argparse.Namespace) -> int:
    settings = load_settings()
    documents = [
        VendorDocument(file_name=Path(p).name, key=p, data=Path(p).read_bytes())
        for p in args.files
    ]
    scores = calculate_excel_scores_for_vendor(args.vendor, documents, settings)
    output: Dict[str, Any] = {"scores": scores.to_dict()}
    if args.ai_score is not None:
        output["hybrid"] = blend_vendor_score(args.ai_score, scores, settings).to_dict()
    print(json.dumps(output, indent=2))
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vendor-scoring",
        description="Generate vendor questionnaires and score filled ones.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Write a questionnaire workbook")
    gen.add_argument("questions", help="JSON file with the generated questions")
    gen.add_argument(
        "output",
        nargs="?",
        default=None,
        help="Path of the .xlsx to write (default: <QUESTIONNAIRE_OUTPUT_DIR>/<title>.xlsx)",
    )
    gen.add_argument("--title", default="Questionnaire", help="Sheet title")
    gen.add_argument(
        "--procurement",
        action="store_true",
        help="Write the three-sheet procurement workbook instead",
    )
    gen.set_defaults(func=_cmd_generate)

    score = sub.add_parser("score", help="Score filled questionnaires of one vendor")
    score.add_argument("files", nargs="+", help="Filled .xlsx files")
    score.add_argument("--vendor", default="vendor", help="Vendor name")
    score.add_argument("--ai-score", type=float, default=None, help="Blend with this AI score")
    score.set_defaults(func=_cmd_score)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging()
    set_logger(
        logging.getLogger(DEFAULT_LOGGER_NAME),
        tool_name=f"cli_{args.command}",
        request_type="CLI",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
