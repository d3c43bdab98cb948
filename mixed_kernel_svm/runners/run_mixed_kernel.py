from __future__ import annotations

import argparse
import json
from pathlib import Path

import numpy as np
from sklearn.metrics import accuracy_score, confusion_matrix

from mixed_kernel_svm import config
from mixed_kernel_svm.data import load_train_test
from mixed_kernel_svm.errors import KernelError
from mixed_kernel_svm.experiment_logger import ExperimentTimer, append_record, make_record
from mixed_kernel_svm.models_svm import MixedKernelSVM


def _print_report(model: MixedKernelSVM, accuracy: float, cm: np.ndarray, classes) -> None:
    print("\n  ╔══════════════════════════════════════════════════════════════╗")
    print("  ║              MIXED-KERNEL SVM REPORT                         ║")
    print("  ╠══════════════════════════════════════════════════════════════╣")
    groups = model.configuration_.describe()
    print(f"  ║  Groups: rbf={groups['rbf']:<3} jaccard={groups['jaccard']:<3} "
          f"univariate={groups['univariate']:<3} d={groups['d']:<3}          ║")
    print(f"  ║  gamma = {model.gamma_:<12.6g} C = {model.C_:<12g}                     ║")
    for c, s in model.cv_scores_:
        mark = "*" if c == model.C_ else " "
        print(f"  ║ {mark} C={c:<10g} CV error: {s:6.2f}%                            ║")
    print("  ╠══════════════════════════════════════════════════════════════╣")
    print(f"  ║  Test accuracy: {accuracy * 100:6.2f}%                                    ║")
    print("  ╚══════════════════════════════════════════════════════════════╝")
    print(f"  Confusion matrix (rows=true, cols=pred, classes={list(classes)}):")
    print(cm)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Mixed-kernel SVM on a mixed numeric/categorical CSV (Horse Colic defaults).")
    parser.add_argument("--train", required=True)
    parser.add_argument("--test", default=None, help="Test CSV. Without it a stratified 25%% split of --train is held out.")
    parser.add_argument("--target", default=config.HORSE_COLIC_TARGET)
    parser.add_argument("--categorical", default=None, help="Comma-separated categorical columns.")
    parser.add_argument("--drop", default=None, help="Comma-separated columns to ignore.")
    parser.add_argument("--c-grid", default=None, help="Comma-separated C candidates.")
    parser.add_argument("--gamma", type=float, default=None, help="Fix gamma instead of estimating it.")
    parser.add_argument("--folds", type=int, default=config.N_FOLDS)
    parser.add_argument("--seed", type=int, default=config.SEED)
    parser.add_argument("--n-jobs", type=int, default=config.N_JOBS)
    parser.add_argument("--unseen", choices=["raise", "rare"], default=config.UNSEEN_CATEGORY)
    parser.add_argument("--history", default=config.HISTORY_CSV)
    parser.add_argument("--notes", default="")
    args = parser.parse_args(argv)

    def _split(s):
        return None if s is None else [t.strip() for t in s.split(",") if t.strip()]

    timer = ExperimentTimer()
    train, test, encoder = load_train_test(
        args.train,
        args.test,
        categorical=_split(args.categorical),
        target=args.target,
        drop=_split(args.drop),
        seed=args.seed,
    )

    c_grid = [float(c) for c in _split(args.c_grid)] if args.c_grid else config.C_GRID
    model = MixedKernelSVM(
        schema=train.schema,
        gamma=args.gamma,
        c_grid=c_grid,
        n_folds=args.folds,
        unseen=args.unseen,
        random_state=args.seed,
        n_jobs=args.n_jobs,
    )
    try:
        model.fit(train.X, train.y)
        y_pred = model.predict(test.X)
    except KernelError as e:
        print(f"[ERROR] {type(e).__name__}: {e}")
        return 1

    accuracy = float(accuracy_score(test.y, y_pred))
    cm = confusion_matrix(test.y, y_pred, labels=np.arange(len(encoder.label_encoder_.classes_)))
    _print_report(model, accuracy, cm, encoder.label_encoder_.classes_)

    history_csv = Path(args.history).resolve()
    record = make_record(
        repo_root=Path.cwd(),
        dataset_train_path=str(Path(args.train).resolve()),
        dataset_test_path=str(Path(args.test).resolve()) if args.test else None,
        cv_folds=args.folds,
        seed=args.seed,
        kernel_groups=model.configuration_.describe(),
        gamma=model.gamma_,
        C=model.C_,
        cv_scores=model.cv_scores_,
        test_accuracy=accuracy,
        runtime_seconds=timer.seconds(),
        notes=args.notes,
    )
    append_record(history_csv, record)
    print(json.dumps({"gamma": model.gamma_, "C": model.C_, "test_accuracy": accuracy}, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
