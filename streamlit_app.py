from slotmath.ui_math_model import show_math_workbench

show_math_workbench()
