from __future__ import annotations

"""CLI for MathPractice: timed tests, practice rounds, progress and data tools."""

import argparse
import json
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..analytics import (
    analyze_topic_performance,
    export_history_parquet,
    get_test_recommendations,
    progress_overview,
    study_plan,
)
from ..config.config import load_config, validate_config
from ..logging_config import setup_logging
from ..questions import QUESTION_TYPES, SEMESTER_TOPICS, QuestionBank, QuestionService, get_topic_display_name
from ..questions.model import DIFFICULTIES, QUESTION_TYPE_NAMES
from ..scoring import calculate_grade
from ..sheets import SheetsClient
from ..storage import FileStorage, SessionStore, StudentInfo
from ..storage import codec
from ..util.formatting import format_clock, format_duration
from ..util.randomness import seed_if_needed
from .exam import Phase, TestConfig, TestSessionManager, review_rows
from .practice import PracticeRunner

HELP_TEST = "Lệnh: [Enter] câu tiếp  :p câu trước  :g N tới câu N  :s nộp bài  :q tạm dừng"


def _build_ui() -> Dict[str, Callable[..., Any]]:
    def ask(prompt: str) -> str:
        return input(prompt)

    def inform(msg: str) -> None:
        print(msg)

    def confirm(prompt: str) -> bool:
        return input(f"{prompt} [c/k] ").strip().lower() in ("c", "y", "có", "yes")

    return {"ask": ask, "inform": inform, "confirm": confirm}


def _build_store(cfg: Dict[str, Any]) -> SessionStore:
    st = cfg["storage"]
    return SessionStore(
        FileStorage(Path(st["data_dir"])),
        namespace=st["namespace"],
        weak_threshold=cfg["progress"]["weak_score_threshold"],
    )


def _build_sheets(cfg: Dict[str, Any]) -> SheetsClient:
    sh = cfg["sheets"]
    return SheetsClient(sh.get("script_url", ""), timeout=float(sh.get("timeout_s", 10)))


def _background_publisher(store: SessionStore, client: SheetsClient, submit: Callable[[Any, StudentInfo], Any]) -> Optional[Callable[[Any], None]]:
    """Fire-and-forget submission on a daemon thread; None when sync is off."""
    if not client.configured:
        return None

    def publish(record: Any) -> None:
        student = store.get_student_info()
        if student is None:
            return
        threading.Thread(target=submit, args=(record, student), daemon=True).start()

    return publish


def _print_result(ui: Dict[str, Callable[..., Any]], mgr: TestSessionManager, service: QuestionService) -> None:
    result = mgr.result
    assert result is not None
    ui["inform"]("\n=== Kết quả ===")
    ui["inform"](f"Điểm: {result.score}/10 ({calculate_grade(result.score)})")
    ui["inform"](f"Đúng {result.correct_answers}/{result.total_questions} câu, thời gian {format_duration(result.time_spent)}")
    for row in review_rows(mgr.test_questions, result):
        mark = "✓" if row["is_correct"] else "✗"
        ui["inform"](f" {mark} Câu {row['number']}: {row['content']}")
        if not row["is_correct"]:
            ui["inform"](f"     Bạn trả lời: {row['student_answer'] or '(bỏ trống)'}  Đáp án: {row['correct_answer']}")
    recs = get_test_recommendations(result, service.get_question_by_id)
    if recs:
        ui["inform"]("Nên ôn lại:")
        for r in recs:
            ui["inform"](f" - {get_topic_display_name(r.topic)}: {r.reason}")


def _apply_test_command(mgr: TestSessionManager, q: Any, raw: str, ui: Dict[str, Callable[..., Any]]) -> None:
    if raw == ":s":
        mgr.request_submit()
    elif raw == ":p":
        mgr.previous_question()
    elif raw.startswith(":g"):
        try:
            mgr.go_to(int(raw[2:].strip()) - 1)
        except ValueError:
            ui["inform"](HELP_TEST)
    elif raw:
        if q.options and raw.isdigit() and 1 <= int(raw) <= len(q.options):
            raw = q.options[int(raw) - 1]
        mgr.set_answer(raw)
        mgr.next_question()
    else:
        mgr.next_question()


def run_test(mgr: TestSessionManager, config: Optional[TestConfig], ui: Dict[str, Callable[..., Any]], service: QuestionService) -> int:
    phase = mgr.open(config)
    if phase == Phase.AWAITING_CONFIG:
        ui["inform"]("Chưa có cấu hình bài kiểm tra. Dùng --semester, --topics và --count.")
        return 2
    if phase == Phase.RESUME_CHECK:
        s = mgr.resume_summary()
        assert s is not None
        ui["inform"](
            f"Bạn có bài kiểm tra chưa hoàn thành: đã trả lời {s.answered}/{s.question_count} câu ({s.progress_pct}%), "
            f"đang ở câu {s.current_question}, còn {s.time_remaining_text}."
        )
        phase = mgr.resume() if ui["confirm"]("Tiếp tục bài cũ?") else mgr.start_fresh()
        if phase == Phase.AWAITING_CONFIG:
            ui["inform"]("Không có câu hỏi phù hợp.")
            return 2

    if mgr.countdown is not None:
        mgr.countdown.start()
    ui["inform"](HELP_TEST)
    try:
        while mgr.phase in (Phase.IN_PROGRESS, Phase.CONFIRMING_SUBMIT):
            if mgr.phase == Phase.CONFIRMING_SUBMIT:
                ok = ui["confirm"](f"Còn {mgr.unanswered_count} câu chưa trả lời. Vẫn nộp bài?")
                if mgr.phase == Phase.COMPLETE:
                    break
                if ok:
                    mgr.confirm_submit()
                else:
                    mgr.cancel_submit()
                continue
            q = mgr.current_question
            assert q is not None
            ui["inform"](f"\n[{format_clock(mgr.time_remaining)}] Câu {mgr.current_index + 1}/{len(mgr.test_questions)}: {q.content}")
            for i, opt in enumerate(q.options or [], start=1):
                ui["inform"](f"   {i}. {opt}")
            if mgr.current_answer:
                ui["inform"](f"   (đã trả lời: {mgr.current_answer})")
            raw = ui["ask"]("> ").strip()
            if mgr.phase == Phase.COMPLETE:
                ui["inform"]("Hết giờ! Bài đã được nộp tự động.")
                break
            if raw == ":q":
                mgr.before_unload()
                ui["inform"]("Đã lưu. Chạy lại lệnh để tiếp tục.")
                return 0
            try:
                _apply_test_command(mgr, q, raw, ui)
            except RuntimeError:
                # countdown finished between the prompt and the command
                if mgr.phase != Phase.COMPLETE:
                    raise
    finally:
        mgr.close()
    if mgr.phase == Phase.COMPLETE:
        _print_result(ui, mgr, service)
    return 0


def run_practice(runner: PracticeRunner, ui: Dict[str, Callable[..., Any]]) -> int:
    if not runner.round:
        ui["inform"]("Không có câu hỏi phù hợp.")
        return 2
    if runner.countdown is not None:
        runner.countdown.start()
        ui["inform"](f"Thời gian: {format_clock(runner.countdown.remaining)}")
    ui["inform"]("Nhập ? để xem gợi ý, :b để bỏ qua, :q để kết thúc.")
    while not runner.finished:
        q = runner.current_question
        assert q is not None
        ui["inform"](f"\nCâu {runner.index + 1}/{len(runner.round)}: {q.content}")
        for i, opt in enumerate(q.options or [], start=1):
            ui["inform"](f"   {i}. {opt}")
        raw = ui["ask"]("> ").strip()
        if runner.finished:
            ui["inform"]("Hết giờ!")
            break
        if raw == "?":
            hint = runner.next_hint()
            ui["inform"](f"Gợi ý: {hint}" if hint else "Không còn gợi ý.")
            continue
        if raw == ":q":
            break
        if raw == ":b":
            runner.skip()
            continue
        if not raw:
            continue
        if q.options and raw.isdigit() and 1 <= int(raw) <= len(q.options):
            raw = q.options[int(raw) - 1]
        fb = runner.answer(raw)
        if fb.is_correct:
            ui["inform"]("Đúng rồi!")
        else:
            ui["inform"](f"Chưa đúng. Đáp án: {fb.correct_answer}")
        if fb.explanation:
            ui["inform"](f"Giải thích: {fb.explanation}")
    session = runner.finish()
    if session is None:
        ui["inform"]("Chưa trả lời câu nào.")
        return 0
    ui["inform"](
        f"\nHoàn thành {session.questions_attempted} câu, đúng {session.correct_answers}, "
        f"thời gian {format_duration(session.time_spent)}"
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="mathpractice")
    p.add_argument("--config", default=None)
    p.add_argument("--explain", action="store_true")
    sub = p.add_subparsers(dest="cmd", required=True)

    lt = sub.add_parser("list-topics")
    lt.add_argument("--semester", type=int, choices=[1, 2], default=None)

    sub.add_parser("stats")

    si = sub.add_parser("student", help="Set the name/class used for spreadsheet sync")
    si.add_argument("--name", default=None)
    si.add_argument("--class", dest="class_name", default=None)
    si.add_argument("--clear", action="store_true")

    tp = sub.add_parser("test")
    tp.add_argument("--semester", type=int, choices=[1, 2], default=None)
    tp.add_argument("--topics", default=None, help="Comma-separated topic ids")
    tp.add_argument("--count", type=int, default=None)

    pp = sub.add_parser("practice")
    pp.add_argument("--mode", choices=QUESTION_TYPES, required=True)
    pp.add_argument("--semester", type=int, choices=[1, 2], default=None)
    pp.add_argument("--topic", default=None)
    pp.add_argument("--difficulty", choices=DIFFICULTIES, default=None)
    pp.add_argument("--count", type=int, default=None)
    pp.add_argument("--time-limit", dest="time_limit", type=int, default=None, help="Seconds (tinh-nhanh defaults to the configured quick limit)")

    sub.add_parser("progress")
    sub.add_parser("weak-areas")

    ep = sub.add_parser("export")
    ep.add_argument("--out", required=True)

    ip = sub.add_parser("import")
    ip.add_argument("path")
    ip.add_argument("--overwrite", action="store_true")

    rp = sub.add_parser("reset")
    rp.add_argument("--yes", action="store_true")

    hp = sub.add_parser("export-history")
    hp.add_argument("--out", required=True, help="Output directory")

    sub.add_parser("sheets-pull")

    args = p.parse_args(argv)

    seed_if_needed()
    cfg = validate_config(load_config(args.config))
    setup_logging(cfg["logging"]["level"])
    if args.explain:
        from .explain import enable as explain_enable
        explain_enable(True)
    ui = _build_ui()

    if args.cmd == "list-topics":
        for sem, topics in SEMESTER_TOPICS.items():
            if args.semester and sem != args.semester:
                continue
            print(f"Học kỳ {sem}:")
            for t in topics:
                print(f"  {t}: {get_topic_display_name(t)}")
        return 0

    service = QuestionService(QuestionBank.from_directory())

    if args.cmd == "stats":
        st = service.get_question_stats()
        print(f"Tổng số câu hỏi: {st.total}")
        print(f"Theo học kỳ: {st.by_semester}")
        for mode, n in st.by_mode.items():
            print(f"  {QUESTION_TYPE_NAMES[mode]}: {n}")
        for topic, n in st.by_topic.items():
            print(f"  {get_topic_display_name(topic)}: {n}")
        print(f"Theo độ khó: {st.by_difficulty}")
        return 0

    store = _build_store(cfg)
    sheets = _build_sheets(cfg)

    if args.cmd == "student":
        if args.clear:
            store.clear_student_info()
            return 0
        if args.name:
            store.save_student_info(StudentInfo(name=args.name.strip(), class_name=args.class_name))
        info = store.get_student_info()
        print(f"{info.name} - {info.class_name or ''}" if info else "Chưa có thông tin học sinh.")
        return 0

    if args.cmd == "test":
        config = None
        if args.semester or args.topics or args.count:
            config = TestConfig.from_params(args.semester, args.topics, args.count or cfg["test"]["default_question_count"])
            if config is None:
                print("Cấu hình không hợp lệ. Xem list-topics.")
                return 2
        mgr = TestSessionManager(
            store,
            service,
            publisher=_background_publisher(store, sheets, sheets.submit_test_result),
            autosave_every=cfg["test"]["autosave_every_s"],
            overfetch=cfg["test"]["overfetch"],
        )
        return run_test(mgr, config, ui, service)

    if args.cmd == "practice":
        pc = cfg["practice"]
        quick = args.mode == "tinh-nhanh"
        count = args.count or (pc["quick_questions"] if quick else pc["questions_per_session"])
        time_limit = args.time_limit or (pc["quick_time_limit_s"] if quick else None)
        runner = PracticeRunner(store, service, publisher=_background_publisher(store, sheets, sheets.submit_practice_result))
        runner.start(args.mode, count=count, semester=args.semester, topic=args.topic, difficulty=args.difficulty, time_limit=time_limit)
        return run_practice(runner, ui)

    if args.cmd == "progress":
        ov = progress_overview(store.load_progress(), store.get_test_history(), store.get_practice_history())
        print(f"Bài đã làm: {ov['total_exercises']}, đúng {ov['correct_answers']} ({ov['accuracy']}%)")
        print(f"Bài kiểm tra: {ov['tests_taken']}, điểm trung bình {ov['average_test_score']}" + (f" ({ov['grade']})" if ov["grade"] else ""))
        print(f"Buổi luyện tập: {ov['practice_sessions']}")
        for t in ov["recent_tests"]:
            print(f"  {t['date'][:10]}  {t['score']}/10  {', '.join(t['topics'])}")
        if ov["weak_topics"]:
            print("Chủ đề cần cải thiện: " + ", ".join(get_topic_display_name(t) for t in ov["weak_topics"]))
        return 0

    if args.cmd == "weak-areas":
        history = store.get_test_history()
        perf = analyze_topic_performance(history, service.get_question_by_id)
        if not perf.empty:
            print(perf[["average_score", "recent_score", "trend", "total_questions"]].to_string())
        for item in study_plan(history, service.get_question_by_id):
            print(f"[{item.priority}] {get_topic_display_name(item.topic)}: {item.message} -> practice --mode {item.practice_mode} --topic {item.topic}")
        return 0

    if args.cmd == "export":
        out = Path(args.out).expanduser()
        out.write_text(codec.encode_snapshot(store.export_all_data()), encoding="utf-8")
        print(f"Đã xuất dữ liệu: {out}")
        return 0

    if args.cmd == "import":
        try:
            snapshot = codec.decode_snapshot(Path(args.path).expanduser().read_text(encoding="utf-8"))
            added = store.import_data(snapshot, overwrite=args.overwrite)
        except (OSError, ValueError) as e:
            # CodecError and pydantic's ValidationError are both ValueErrors
            print(f"Không thể nhập dữ liệu: {e}")
            return 1
        print(f"Đã nhập {added['tests']} bài kiểm tra, {added['practice']} buổi luyện tập.")
        return 0

    if args.cmd == "reset":
        if args.yes or ui["confirm"]("Xóa toàn bộ dữ liệu học tập?"):
            store.clear_all_data()
            print("Đã xóa dữ liệu.")
        return 0

    if args.cmd == "export-history":
        for path in export_history_parquet(Path(args.out), store.get_test_history(), store.get_practice_history()):
            print(path)
        return 0

    if args.cmd == "sheets-pull":
        data = sheets.fetch_all_data()
        if not data.success:
            print(f"Lỗi: {data.error}")
            return 1
        print(json.dumps({"testResults": data.test_results, "practiceResults": data.practice_results}, ensure_ascii=False, indent=2))
        return 0

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
