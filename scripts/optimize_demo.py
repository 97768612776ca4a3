from beam_rebar.domain.beam import BeamGroup, BeamSpan
from beam_rebar.domain.results import BeamResultData
from beam_rebar.engine.optimizer import BeamAwareOptimizer
from beam_rebar.engine.pipeline import RebarPipeline, section_pass
from beam_rebar.sections.check import audit_solution
from beam_rebar.engine.normalize import position_requirements
from beam_rebar.services.logging_setup import setup_logging
from beam_rebar.services.settings import DesignSettings

setup_logging()

settings = DesignSettings()
settings.load_inventory()

group = BeamGroup(
    group_name="V-101",
    spans=[
        BeamSpan(span_id="S1", width_mm=300, height_mm=600, length_mm=6000),
        BeamSpan(span_id="S2", width_mm=300, height_mm=600, length_mm=5000),
    ],
)

# Áreas en cm² (izq / centro / der), corte en cm²/cm
results = [
    BeamResultData(
        top_area=(6.5, 2.0, 14.0),
        bot_area=(3.0, 11.5, 4.0),
        shear_area=(0.060, 0.020, 0.085),
    ),
    BeamResultData(
        top_area=(12.0, 2.0, 5.0),
        bot_area=(4.0, 8.0, 3.0),
        shear_area=(0.070, 0.020, 0.045),
    ),
]

opt = BeamAwareOptimizer(settings)
for sol in opt.optimize(group, results)[:3]:
    print(f"{sol.option_name}: {sol.total_steel_weight:.1f} kg, {len(sol.reinforcements)} refuerzos")
print("stats =", opt.last_stats)

sols = RebarPipeline().execute(group, results, settings)
if not sols:
    print("Sin arreglo factible")
else:
    best = sols[0]
    print("\n".join(best.summary()))
    for k in sorted(best.stirrup_designs):
        print(k, "=", best.stirrup_designs[k])

    reqs = position_requirements(group, results, settings)
    for row in audit_solution(solution=best, requirements=reqs):
        print(f"{row.position:16s} req={row.required_cm2:6.2f} prov={row.provided_cm2:6.2f} ok={row.ok}")

sections, ok = section_pass(group, results, settings)
print("secciones fusionadas:", ok)
for s in sections:
    top = s.valid_top[0].to_display_string() if s.valid_top else "-"
    bot = s.valid_bot[0].to_display_string() if s.valid_bot else "-"
    print(f"{s.section_id:10s} x={s.position_m:5.2f} m  sup={top:12s} inf={bot}")
