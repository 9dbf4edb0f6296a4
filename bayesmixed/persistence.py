"""
Saving, loading and memoizing fitted posteriors.

A saved posterior is a pair of files sharing one stem:

    <stem>.npz   # raw chains, per-draw sampler statistics, dataset arrays
    <stem>.json  # model spec, sampler config, adaptation and run metadata

load_posterior() rebuilds a PosteriorSolution with the same draws,
sampler statistics and diagnostics. FitCache keys saved fits by a
SHA-256 over (model spec, dataset fingerprint, sampler config, seed) so
that repeated runs of an analysis skip sampling; fit() itself never
looks at a cache.
"""

from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any

import numpy as np

from bayesmixed.core.exceptions import ValidationError
from bayesmixed.core.result import Result
from bayesmixed.data import Dataset
from bayesmixed.diagnostics.solvers import diagnose
from bayesmixed.model._log_density import build_layout
from bayesmixed.model.spec import ModelSpec
from bayesmixed.sampling._common import AdaptationInfo, Chain, PosteriorParams
from bayesmixed.sampling.design import SamplerConfig
from bayesmixed.sampling.solution import PosteriorSolution
from bayesmixed.sampling.solvers import fit

FORMAT_VERSION = 1

_PER_DRAW = (
    'log_density', 'step_size', 'tree_depth', 'n_leapfrog',
    'divergent', 'accept_stat', 'energy',
)


def _paths(path: str | os.PathLike) -> tuple[Path, Path]:
    stem = Path(path)
    if stem.suffix in ('.npz', '.json'):
        stem = stem.with_suffix('')
    return stem.with_name(stem.name + '.npz'), stem.with_name(stem.name + '.json')


def _to_json(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def save_posterior(solution: PosteriorSolution, path: str | os.PathLike) -> Path:
    """
    Write a fitted posterior to <stem>.npz and <stem>.json.

    Args:
        solution: Output of fit().
        path: File stem; a trailing .npz or .json is ignored.

    Returns:
        Path of the .npz file.
    """
    npz_path, json_path = _paths(path)
    npz_path.parent.mkdir(parents=True, exist_ok=True)

    params = solution.params
    chains = params.chains
    ds = solution.dataset

    arrays = {
        'draws': np.stack([c.draws for c in chains]),
        'constrained_draws': params.draws,
        'inv_mass_diag': np.stack([c.adaptation.inv_mass_diag for c in chains]),
        'initial_point': np.stack([c.adaptation.initial_point for c in chains]),
        'response': ds.response,
        'covariates': ds.covariates,
        'group_codes': ds.group_codes,
    }
    for key in _PER_DRAW:
        arrays[key] = np.stack([getattr(c, key) for c in chains])

    meta = {
        'format_version': FORMAT_VERSION,
        'spec': solution.spec.to_dict(),
        'config': solution.config.to_dict(),
        'dataset': {
            'covariate_names': list(ds.covariate_names),
            'group_levels': ds.group_levels.tolist(),
            'group_name': ds.group_name,
            'response_name': ds.response_name,
            'fingerprint': ds.fingerprint(),
        },
        'chains': [
            {
                'chain_id': c.chain_id,
                'step_size': c.adaptation.step_size,
                'init_step_size': c.adaptation.init_step_size,
                'seed_entropy': c.seed_entropy,
                'spawn_key': list(c.spawn_key),
            }
            for c in chains
        ],
        'parameter_names': list(params.parameter_names),
        'unconstrained_names': list(params.unconstrained_names),
        'n_divergent': params.n_divergent,
        'info': solution.info,
        'timing': solution.timing,
        'backend_name': solution.backend_name,
        'warnings': list(solution.result.warnings),
        'provenance': solution.result.provenance,
    }

    np.savez_compressed(npz_path, **arrays)
    with open(json_path, 'w') as f:
        json.dump(meta, f, indent=2, default=_to_json)
    return npz_path


def load_posterior(path: str | os.PathLike) -> PosteriorSolution:
    """
    Rebuild a PosteriorSolution written by save_posterior().

    Raises:
        FileNotFoundError: Either file of the pair is missing.
        ValidationError: Unknown format version, or the stored dataset
            does not match its recorded fingerprint.
    """
    npz_path, json_path = _paths(path)
    with open(json_path, 'r') as f:
        meta = json.load(f)
    if meta.get('format_version') != FORMAT_VERSION:
        raise ValidationError(
            f"{json_path}: unsupported format version "
            f"{meta.get('format_version')!r}, expected {FORMAT_VERSION}"
        )

    with np.load(npz_path) as npz:
        arrays = {key: npz[key] for key in npz.files}

    dmeta = meta['dataset']
    dataset = Dataset(
        response=arrays['response'],
        covariates=arrays['covariates'],
        covariate_names=tuple(dmeta['covariate_names']),
        group_codes=arrays['group_codes'],
        group_levels=np.asarray(dmeta['group_levels']),
        group_name=dmeta['group_name'],
        response_name=dmeta['response_name'],
        _metadata={'source': str(npz_path)},
    )
    if dataset.fingerprint() != dmeta['fingerprint']:
        raise ValidationError(
            f"{npz_path}: stored dataset does not match its fingerprint"
        )

    spec = ModelSpec.from_dict(meta['spec'])
    config = SamplerConfig.build(**meta['config'])

    chains = []
    for i, cmeta in enumerate(meta['chains']):
        adaptation = AdaptationInfo(
            step_size=cmeta['step_size'],
            inv_mass_diag=arrays['inv_mass_diag'][i],
            init_step_size=cmeta['init_step_size'],
            initial_point=arrays['initial_point'][i],
        )
        chains.append(Chain(
            chain_id=cmeta['chain_id'],
            draws=arrays['draws'][i],
            adaptation=adaptation,
            seed_entropy=cmeta['seed_entropy'],
            spawn_key=tuple(cmeta['spawn_key']),
            **{key: arrays[key][i] for key in _PER_DRAW},
        ))

    params = PosteriorParams(
        chains=tuple(chains),
        draws=arrays['constrained_draws'],
        parameter_names=tuple(meta['parameter_names']),
        unconstrained_names=tuple(meta['unconstrained_names']),
        n_divergent=meta['n_divergent'],
    )
    result = Result(
        params=params,
        info=meta['info'],
        timing=meta['timing'],
        backend_name=meta['backend_name'],
        warnings=tuple(meta['warnings']),
        provenance=meta['provenance'],
    )
    diagnostics = diagnose(
        params.draws,
        names=params.parameter_names,
        divergent=[c.divergent for c in chains],
        warn=False,
    )
    return PosteriorSolution(
        _result=result,
        _dataset=dataset,
        _spec=spec,
        _config=config,
        _diagnostics=diagnostics,
        _layout=build_layout(dataset, spec),
    )


class FitCache:
    """
    Directory of saved fits keyed by model, data, config and seed.

    Usage:
        cache = FitCache('fits/')
        post = cache.fit_or_load(ds, spec, config, seed=42)
    """

    def __init__(self, directory: str | os.PathLike):
        self.directory = Path(directory)

    @staticmethod
    def key(
        dataset: Dataset,
        spec: ModelSpec,
        config: SamplerConfig,
        seed: int,
    ) -> str:
        """SHA-256 over the canonical JSON of (spec, data fingerprint, config, seed)."""
        payload = json.dumps(
            {
                'spec': spec.to_dict(),
                'dataset': dataset.fingerprint(),
                'config': config.to_dict(),
                'seed': seed,
            },
            sort_keys=True,
            default=_to_json,
        )
        return hashlib.sha256(payload.encode('utf-8')).hexdigest()

    def path_for(self, key: str) -> Path:
        return self.directory / key

    def contains(self, key: str) -> bool:
        npz_path, json_path = _paths(self.path_for(key))
        return npz_path.exists() and json_path.exists()

    def fit_or_load(
        self,
        dataset: Dataset,
        spec: ModelSpec,
        config: SamplerConfig | None = None,
        seed: int | None = None,
        **fit_kwargs: Any,
    ) -> PosteriorSolution:
        """
        Load the cached fit for these inputs, or fit and save it.

        Args:
            dataset, spec, config, seed: As for fit(). A seed is required;
                an unseeded fit is not reproducible and cannot be cached.
            **fit_kwargs: Passed to fit() on a cache miss (inits,
                cancel_event, timeout, max_workers).

        Raises:
            ValidationError: seed is None.
        """
        if seed is None:
            raise ValidationError("seed: caching requires a fixed seed")
        config = SamplerConfig.build() if config is None else config.validate()
        key = self.key(dataset, spec, config, seed)
        if self.contains(key):
            return load_posterior(self.path_for(key))
        posterior = fit(dataset, spec, config=config, seed=seed, **fit_kwargs)
        save_posterior(posterior, self.path_for(key))
        return posterior
