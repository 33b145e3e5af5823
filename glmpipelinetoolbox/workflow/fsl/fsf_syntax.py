"""Builders for the EV, contrast, and cope-input blocks of FEAT design files."""
from pandas import DataFrame

OUTPUT_DIR_PLACEHOLDER = '.OUTPUTDIR.'
EVS_PLACEHOLDER = '.EVS.'
CONTRASTS_PLACEHOLDER = '.CONTRASTS.'
COPE_INPUTS_PLACEHOLDER = '.COPEINPUTS.'
FUNCTIONAL_PLACEHOLDER = '.FUNCTIONAL.'
NVOLS_PLACEHOLDER = '.NVOLS.'
TR_PLACEHOLDER = '.TR.'


def format_number(value) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return format(value, '.10g')


def _ortho_lines(ev: int, n_evs: int) -> list[str]:
    lines = []
    for other in range(0, n_evs + 1):
        lines.extend([
            f'# Orthogonalise EV {ev} wrt EV {other}',
            f'set fmri(ortho{ev}.{other}) 0',
            '',
        ])
    return lines


def generate_higher_level_ev_syntax(inputs: list[str], model_matrix: DataFrame) -> list[str]:
    """FEAT syntax for a higher-level design: one input per design row, one EV per column."""
    if len(inputs) != model_matrix.shape[0]:
        raise ValueError(
            f'{len(inputs)} inputs supplied for a design with {model_matrix.shape[0]} rows.')
    n_inputs = len(inputs)
    n_evs = model_matrix.shape[1]
    lines = [
        '# Number of first-level analyses',
        f'set fmri(multiple) {n_inputs}',
        '',
        '# Number of analyses',
        f'set fmri(npts) {n_inputs}',
        '',
        '# Number of EVs',
        f'set fmri(evs_orig) {n_evs}',
        f'set fmri(evs_real) {n_evs}',
        'set fmri(evs_vox) 0',
        '',
    ]
    for i, input_dir in enumerate(inputs, start=1):
        lines.extend([
            f'# 4D AVW data or FEAT directory ({i})',
            f'set feat_files({i}) "{input_dir}"',
            '',
        ])
    values = model_matrix.to_numpy()
    for ev, regressor in enumerate(model_matrix.columns, start=1):
        lines.extend([
            f'# EV {ev} title',
            f'set fmri(evtitle{ev}) "{regressor}"',
            '',
            f'# Basic waveform shape (EV {ev})',
            f'set fmri(shape{ev}) 2',
            '',
            f'# Convolution (EV {ev})',
            f'set fmri(convolve{ev}) 0',
            '',
            f'# Convolve phase (EV {ev})',
            f'set fmri(convolve_phase{ev}) 0',
            '',
            f'# Apply temporal filtering (EV {ev})',
            f'set fmri(tempfilt_yn{ev}) 0',
            '',
            f'# Add temporal derivative (EV {ev})',
            f'set fmri(deriv_yn{ev}) 0',
            '',
            f'# Custom EV file (EV {ev})',
            f'set fmri(custom{ev}) "dummy"',
            '',
        ])
        lines.extend(_ortho_lines(ev, n_evs))
        for i in range(n_inputs):
            lines.extend([
                f'# Higher-level EV value for EV {ev} and input {i + 1}',
                f'set fmri(evg{i + 1}.{ev}) {format_number(values[i, ev - 1])}',
                '',
            ])
    for i in range(1, n_inputs + 1):
        lines.extend([
            f'# Group membership for input {i}',
            f'set fmri(groupmem.{i}) 1',
            '',
        ])
    return lines


def generate_run_level_ev_syntax(regressors: list[str], timing_files: dict[str, str]) -> list[str]:
    """FEAT syntax for a run-level design with one custom three-column timing file per EV."""
    n_evs = len(regressors)
    lines = [
        '# Number of EVs',
        f'set fmri(evs_orig) {n_evs}',
        f'set fmri(evs_real) {n_evs}',
        'set fmri(evs_vox) 0',
        '',
    ]
    for ev, regressor in enumerate(regressors, start=1):
        lines.extend([
            f'# EV {ev} title',
            f'set fmri(evtitle{ev}) "{regressor}"',
            '',
            f'# Basic waveform shape (EV {ev})',
            f'set fmri(shape{ev}) 3',
            '',
            f'# Convolution (EV {ev})',
            f'set fmri(convolve{ev}) 3',
            '',
            f'# Convolve phase (EV {ev})',
            f'set fmri(convolve_phase{ev}) 0',
            '',
            f'# Apply temporal filtering (EV {ev})',
            f'set fmri(tempfilt_yn{ev}) 1',
            '',
            f'# Add temporal derivative (EV {ev})',
            f'set fmri(deriv_yn{ev}) 0',
            '',
            f'# Custom EV file (EV {ev})',
            f'set fmri(custom{ev}) "{timing_files[regressor]}"',
            '',
        ])
        lines.extend(_ortho_lines(ev, n_evs))
    return lines


def _contrast_lines(kind: str, contrasts: DataFrame) -> list[str]:
    lines = []
    values = contrasts.to_numpy()
    for c, name in enumerate(contrasts.index, start=1):
        lines.extend([
            f'# Display images for contrast_{kind} {c}',
            f'set fmri(conpic_{kind}.{c}) 1',
            '',
            f'# Title for contrast_{kind} {c}',
            f'set fmri(conname_{kind}.{c}) "{name}"',
            '',
        ])
        for ev in range(1, contrasts.shape[1] + 1):
            lines.extend([
                f'# Real contrast_{kind} vector {c} element {ev}',
                f'set fmri(con_{kind}{c}.{ev}) {format_number(values[c - 1, ev - 1])}',
                '',
            ])
    return lines


def generate_contrast_syntax(contrasts: DataFrame, include_original: bool = False) -> list[str]:
    """One contrast block per row. Run-level designs also carry the ``orig`` copies."""
    n_contrasts = contrasts.shape[0]
    lines = [
        '# Contrast & F-tests mode',
        'set fmri(con_mode_old) real',
        'set fmri(con_mode) real',
        '',
        '# Number of contrasts',
        f'set fmri(ncon_real) {n_contrasts}',
        f'set fmri(ncon_orig) {n_contrasts if include_original else 0}',
        '',
        '# Number of F-tests',
        'set fmri(nftests_real) 0',
        'set fmri(nftests_orig) 0',
        '',
    ]
    lines.extend(_contrast_lines('real', contrasts))
    if include_original:
        lines.extend(_contrast_lines('orig', contrasts))
    lines.extend([
        '# Contrast masking - use >0 instead of thresholding?',
        'set fmri(conmask_zerothresh_yn) 0',
        '',
    ])
    for c1 in range(1, n_contrasts + 1):
        for c2 in range(1, n_contrasts + 1):
            if c1 != c2:
                lines.extend([
                    f'# Mask real contrast/F-test {c1} with real contrast/F-test {c2}?',
                    f'set fmri(conmask{c1}_{c2}) 0',
                    '',
                ])
    lines.extend([
        '# Do contrast masking at all?',
        'set fmri(conmask1_1) 0',
        '',
    ])
    return lines


def generate_cope_input_syntax(n_copes: int) -> list[str]:
    lines = [
        '# Number of lower-level copes feeding into higher-level analysis',
        f'set fmri(ncopeinputs) {n_copes}',
        '',
    ]
    for n in range(1, n_copes + 1):
        lines.extend([
            f'# Use lower-level cope {n} for higher-level analysis',
            f'set fmri(copeinput.{n}) 1',
            '',
        ])
    return lines


def substitute_block(text: str, placeholder: str, lines: list[str]) -> str:
    """Replace each template line consisting of ``placeholder`` with ``lines``."""
    result = []
    for line in text.splitlines():
        if line.strip() == placeholder:
            result.extend(lines)
        else:
            result.append(line)
    return '\n'.join(result) + '\n'


def substitute_values(text: str, values: dict[str, str]) -> str:
    for placeholder, value in values.items():
        text = text.replace(placeholder, value)
    return text
